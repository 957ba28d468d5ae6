from fastapi import APIRouter, Depends, HTTPException, status

from cwv_auditor.features.scan.schemas.scan import ScanStartRequest
from cwv_auditor.features.scan.services.orchestration.orchestrator import ScanSession
from cwv_auditor.features.scan.services.scan_manager import ScanManager, get_scan_manager
from cwv_auditor.platform.response import api_response

router = APIRouter(prefix="/scan", tags=["scan"])


def _get_session_or_404(manager: ScanManager, session_id: str) -> ScanSession:
    session = manager.get(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Scan session {session_id} not found",
        )
    return session


@router.post("/start", summary="Start scanning the selected pages")
async def start_scan(
    request: ScanStartRequest,
    manager: ScanManager = Depends(get_scan_manager),
):
    """
    Pages are fetched one at a time in the order given. When `email` is set,
    every closed batch of results is mailed as CSV while the scan continues.
    A running scan with the same owner is cancelled.
    """
    session = manager.start(request)

    return api_response(
        data=session.snapshot(),
        message="Scan started",
        status_code=status.HTTP_202_ACCEPTED,
    )


@router.get("/{session_id}", summary="Current state of a scan")
async def get_scan(session_id: str, manager: ScanManager = Depends(get_scan_manager)):
    session = _get_session_or_404(manager, session_id)

    return api_response(
        data=session.snapshot(),
        message=f"Scan is {session.status.value}",
        status_code=status.HTTP_200_OK,
    )


@router.post("/{session_id}/cancel", summary="Stop a running scan")
async def cancel_scan(session_id: str, manager: ScanManager = Depends(get_scan_manager)):
    """
    No new page is started after this call. A page already being fetched is
    still recorded, and no audit is recorded for the session.
    """
    session = _get_session_or_404(manager, session_id)
    manager.cancel(session_id)

    return api_response(
        data=session.snapshot(),
        message="Cancellation requested",
        status_code=status.HTTP_202_ACCEPTED,
    )

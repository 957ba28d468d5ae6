from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from cwv_auditor.features.audits.schemas.audit import RecordAuditRequest
from cwv_auditor.features.audits.services.audit_service import AuditService
from cwv_auditor.platform.db.session import get_db
from cwv_auditor.platform.response import api_response

router = APIRouter(prefix="/audits", tags=["audits"])


@router.post("/record", summary="Record a finished audit")
async def record_audit(request: RecordAuditRequest, db: AsyncSession = Depends(get_db)):
    audit = await AuditService(db).record_audit(
        request.domain,
        str(request.email) if request.email else None,
        request.pages_analyzed,
    )

    return api_response(
        data={"id": audit.id},
        message="Audit recorded",
        status_code=status.HTTP_201_CREATED,
    )

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from cwv_auditor.features.admin.schemas.auth import AdminLoginRequest
from cwv_auditor.features.admin.services.auth import AdminAuthService
from cwv_auditor.features.admin.utils.auth import get_current_admin
from cwv_auditor.features.audits.services.audit_service import AuditService
from cwv_auditor.platform.db.session import get_db
from cwv_auditor.platform.response import api_response

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/login", summary="Login as admin")
async def login_admin(login_data: AdminLoginRequest):
    """
    Authenticate against the configured operator credentials and return an
    access token for the stats endpoint.
    """
    token = AdminAuthService().login_admin(login_data)

    return api_response(
        data=token,
        message="Login successful",
        status_code=status.HTTP_200_OK,
    )


@router.get("/stats", summary="Aggregate audit statistics")
async def get_stats(
    current_admin: dict = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    stats = await AuditService(db).get_stats()

    return api_response(
        data=stats,
        message="Stats retrieved successfully",
        status_code=status.HTTP_200_OK,
    )

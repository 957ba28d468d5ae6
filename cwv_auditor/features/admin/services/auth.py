import hmac
from datetime import timedelta

from fastapi import HTTPException, status

from cwv_auditor.features.admin.schemas.auth import AdminLoginRequest, AdminTokenResponse
from cwv_auditor.features.admin.utils.security import create_access_token
from cwv_auditor.platform.config import settings
from cwv_auditor.platform.logger import get_logger

logger = get_logger(__name__)


class AdminAuthService:
    """
    Single operator account configured through ADMIN_EMAIL / ADMIN_PASSWORD.
    There is no admin table; a successful login just mints a short-lived JWT.
    """

    def __init__(self, admin_email: str = None, admin_password: str = None):
        self.admin_email = (admin_email or settings.ADMIN_EMAIL).lower()
        self.admin_password = admin_password or settings.ADMIN_PASSWORD

    def authenticate(self, email: str, password: str) -> bool:
        email_ok = hmac.compare_digest(email.lower().encode(), self.admin_email.encode())
        password_ok = hmac.compare_digest(password.encode(), self.admin_password.encode())
        return email_ok and password_ok

    def login_admin(self, login_data: AdminLoginRequest) -> AdminTokenResponse:
        if not self.authenticate(str(login_data.email), login_data.password):
            logger.warning(f"Failed admin login for {login_data.email}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )

        expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        access_token = create_access_token(
            data={"sub": self.admin_email, "email": self.admin_email, "is_admin": True},
            expires_delta=expires,
        )
        logger.info(f"Admin {self.admin_email} logged in")
        return AdminTokenResponse(
            access_token=access_token,
            expires_in=int(expires.total_seconds()),
        )

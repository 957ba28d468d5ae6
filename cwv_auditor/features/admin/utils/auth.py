from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from cwv_auditor.features.admin.utils.security import decode_access_token
from cwv_auditor.platform.config import settings

security = HTTPBearer()


async def get_current_admin(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(credentials.credentials)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    email = payload.get("email")
    if not payload.get("is_admin", False) or email is None:
        raise credentials_exception

    # a rotated ADMIN_EMAIL invalidates tokens minted for the previous account
    if email != settings.ADMIN_EMAIL.lower():
        raise credentials_exception

    return {"email": email}

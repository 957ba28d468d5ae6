from typing import Any, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def response_envelope(
    *,
    data: Optional[Any] = None,
    message: str = "Operation successful",
    status_code: int = status.HTTP_200_OK,
) -> dict:
    """Body shared by every JSON response and every SSE event."""
    return {
        "status_code": status_code,
        "status": "success" if status_code < 400 else "error",
        "message": message,
        "data": jsonable_encoder(data) if data is not None else {},
    }


def api_response(
    *,
    data: Optional[Any] = None,
    message: str = "Operation successful",
    status_code: int = status.HTTP_200_OK,
    headers: Optional[dict] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=response_envelope(data=data, message=message, status_code=status_code),
        headers=headers,
    )

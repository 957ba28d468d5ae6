from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from cwv_auditor.platform.logger import get_logger
from cwv_auditor.platform.response import api_response

logger = get_logger(__name__)


class AuditorError(Exception):
    """Base class for errors raised by the auditor's services."""


class InputError(AuditorError):
    """Malformed or missing domain/URL/selection. No scan is started."""


class SitemapError(AuditorError):
    """The sitemap could not be fetched, parsed, or listed no pages."""


class FetchError(AuditorError):
    """The scoring collaborator failed for one URL."""

    def __init__(self, url: str, reason: str, status_code: int | None = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Failed to fetch vitals for {url}: {reason}")


class ExportError(AuditorError):
    """A CSV/PDF/email export could not be produced or delivered."""


def add_exception_handlers(app):
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return api_response(
            message=str(exc.detail) or "Error",
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return api_response(
            message="Validation failed",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            data={"errors": exc.errors()},
        )

    @app.exception_handler(InputError)
    async def input_error_handler(request: Request, exc: InputError):
        return api_response(message=str(exc), status_code=status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(SitemapError)
    async def sitemap_error_handler(request: Request, exc: SitemapError):
        logger.warning(f"Sitemap error on {request.url.path}: {exc}")
        return api_response(message=str(exc), status_code=status.HTTP_502_BAD_GATEWAY)

    @app.exception_handler(FetchError)
    async def fetch_error_handler(request: Request, exc: FetchError):
        logger.warning(str(exc))
        return api_response(
            message="Failed to fetch vitals",
            status_code=status.HTTP_502_BAD_GATEWAY,
            data={"url": exc.url, "reason": exc.reason},
        )

    @app.exception_handler(ExportError)
    async def export_error_handler(request: Request, exc: ExportError):
        logger.error(f"Export failed on {request.url.path}: {exc}")
        return api_response(
            message=f"Failed to generate report: {exc}",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return api_response(
            message="Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

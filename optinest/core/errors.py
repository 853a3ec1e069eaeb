"""Domain exceptions.

Read paths catch these and fall back to defaults; write paths let them
propagate to the router, which turns them into an HTTP error or an inline
form message.
"""
import logging
from typing import Optional

from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class OptinestError(Exception):
    """Base class for every error raised by this package."""


class ContentValidationError(OptinestError):
    """Input the user can correct (bad email, missing field, unsafe file...)."""


class BackendNotConfiguredError(OptinestError):
    pass


class BackendError(OptinestError):
    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Supabase request failed ({status_code}): {body}")


class BackendRLSError(BackendError):
    def __init__(self, status_code: int, body: str = ""):
        super().__init__(status_code, body)
        self.args = (
            f"Supabase request failed ({status_code}) due to RLS. Use SUPABASE_SERVICE_ROLE_KEY "
            "(or SUPABASE_SECRET_KEY) for server-side calls, not anon/publishable keys.",
        )


class InvalidMediaUrlError(OptinestError):
    pass


class OriginRejectedError(OptinestError):
    pass


class AuthorizationError(OptinestError):
    def __init__(self, message: str, redirect_to: Optional[str] = None):
        super().__init__(message)
        self.redirect_to = redirect_to


_STATUS_CODES = (
    (ContentValidationError, 400),
    (InvalidMediaUrlError, 400),
    (OriginRejectedError, 403),
    (AuthorizationError, 403),
    (BackendNotConfiguredError, 503),
    (BackendError, 502),
)


def status_code_for(exc: OptinestError) -> int:
    for error_type, status_code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


def register_exception_handlers(app) -> None:
    """Map domain errors that escape a route onto ``{"detail": ...}`` responses."""

    @app.exception_handler(OptinestError)
    async def handle_optinest_error(request, exc: OptinestError):
        status_code = status_code_for(exc)
        if status_code >= 500:
            # Backend bodies stay in the log
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
            return JSONResponse(status_code=status_code, content={"detail": "Content backend request failed."})
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

"""Matching service errors and their HTTP mapping."""

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse

logger = structlog.get_logger()


class MatchingError(Exception):
    """Base class for errors raised by the matching engine and its services."""


class InvalidArgumentError(MatchingError):
    """Bad run request: missing/unknown candidate, unknown algorithm, bad weights."""


class NotFoundError(MatchingError):
    """A referenced candidate, opportunity or result does not exist."""


class MatchingTimeoutError(MatchingError):
    """A run exceeded MATCHING_RUN_TIMEOUT_SECONDS. Units committed before it are kept."""

    def __init__(self, message: str, session_id: str | None = None):
        self.session_id = session_id
        super().__init__(message)


class RunInterruptedError(MatchingError):
    """A storage failure stopped a run. Units committed before it are kept."""

    def __init__(self, session_id: str, completed_units: int, total_units: int, cause: Exception):
        self.session_id = session_id
        self.completed_units = completed_units
        self.total_units = total_units
        super().__init__(
            f"Run {session_id} interrupted after {completed_units}/{total_units} units: {cause}"
        )


_STATUS_CODES = {
    InvalidArgumentError: 400,
    NotFoundError: 404,
    MatchingTimeoutError: 504,
}


async def matching_error_handler(request: Request, exc: MatchingError) -> JSONResponse:
    status_code = 500
    for exc_type, code in _STATUS_CODES.items():
        if isinstance(exc, exc_type):
            status_code = code
            break

    if status_code >= 500:
        logger.error("matching_error", path=request.url.path, error=str(exc), type=type(exc).__name__)
    else:
        logger.info("matching_request_rejected", path=request.url.path, error=str(exc))

    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "type": exc.__class__.__name__},
    )

"""Domain error taxonomy and HTTP exception handlers.

Services raise these exceptions; the HTTP layer maps them to responses:

    InvalidRequest        -> 400  malformed input, no retry
    ActionForbidden       -> 403  actor may not touch this record
    RecordNotFound        -> 404  missing player/program/assessment/...
    RecipientUnavailable  -> 404  nobody with the required role to route to
    SchedulingConflict    -> 409  slot already taken, try another one
    anything else         -> 500  logged with context, generic body

Upstream failures (AI classifier) never reach this layer; they degrade to
the fallback program inside the service.
"""

from typing import Any

import structlog
from litestar import Request, Response
from litestar.exceptions import HTTPException
from litestar.status_codes import (
    HTTP_400_BAD_REQUEST,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

logger = structlog.get_logger()


class DomainError(Exception):
    """Base class for errors raised by the service layer."""

    status_code: int = HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidRequest(DomainError):
    """Input failed validation."""

    status_code = HTTP_400_BAD_REQUEST


class ActionForbidden(DomainError):
    """Actor is not allowed to perform the action on this record."""

    status_code = HTTP_403_FORBIDDEN


class RecordNotFound(DomainError):
    """Referenced record does not exist (or is not visible to the actor)."""

    status_code = HTTP_404_NOT_FOUND


class RecipientUnavailable(DomainError):
    """No user with the required role could be resolved."""

    status_code = HTTP_404_NOT_FOUND


class SchedulingConflict(DomainError):
    """Requested slot collides with an existing booking."""

    status_code = HTTP_409_CONFLICT


def domain_error_handler(request: Request[Any, Any, Any], exc: DomainError) -> Response[Any]:
    """Render a domain error as a JSON response."""
    logger.info(
        "Request declined",
        path=request.url.path,
        error=type(exc).__name__,
        message=exc.message,
    )
    return Response(
        content={"status": "error", "message": exc.message, "data": exc.details},
        status_code=exc.status_code,
    )


def internal_error_handler(request: Request[Any, Any, Any], exc: Exception) -> Response[Any]:
    """Log unexpected errors and return a generic failure."""
    if isinstance(exc, HTTPException):
        return Response(
            content={"status": "error", "message": exc.detail, "data": exc.extra or {}},
            status_code=exc.status_code,
        )

    logger.exception("Unhandled error", path=request.url.path, error=str(exc))
    return Response(
        content={"status": "error", "message": "Internal server error", "data": {}},
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
    )


exception_handlers = {
    DomainError: domain_error_handler,
    Exception: internal_error_handler,
}

"""Error kinds and the exception handlers that turn them into responses.

Every failure leaves the service as a structured envelope:

    {"error": {"code": "...", "message": "...", "details": {...}}}

Service functions raise the PalletTrackError subclasses below before any
write; the unit of work rolls the transaction back and the handlers here map
the kind to an HTTP status.
"""

import logging
import traceback
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class PalletTrackError(Exception):
    """Base exception for PalletTrack application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class ValidationError(PalletTrackError):
    """Malformed input: missing or non-positive quantity, empty client/actor."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=422,
            error_code="VALIDATION_ERROR",
        )


class InsufficientAvailability(PalletTrackError):
    """Requested task quantity is outside what the lot has available."""

    def __init__(self, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(
            message=f"Invalid quantity. Available: {available}",
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="INSUFFICIENT_AVAILABILITY",
            details={"available": available, "requested": requested},
        )


class InvalidQuantity(PalletTrackError):
    """Discount quantity is outside what the task (or lot) still has pending."""

    def __init__(self, pending: int, requested: int):
        self.pending = pending
        self.requested = requested
        super().__init__(
            message=f"Invalid quantity. Pending: {pending}",
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="INVALID_QUANTITY",
            details={"pending": pending, "requested": requested},
        )


class NotFound(PalletTrackError):
    def __init__(self, resource: str, identifier):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND",
        )


class Forbidden(PalletTrackError):
    """The actor does not hold the lock the operation requires."""

    def __init__(self, message: str = "Task is not held by this actor"):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="FORBIDDEN",
        )


class InvalidState(PalletTrackError):
    """The task is not in the lifecycle or lock state the operation needs."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code="INVALID_STATE",
        )


class Conflict(PalletTrackError):
    """Another actor already holds the task."""

    def __init__(self, task_id: int, holder: str | None):
        self.holder = holder
        super().__init__(
            message=f"Task {task_id} is already being processed by {holder}",
            status_code=status.HTTP_409_CONFLICT,
            error_code="CONFLICT",
            details={"task_id": task_id, "holder": holder},
        )


class StorageError(PalletTrackError):
    """Transaction or connectivity failure. The only kind worth retrying."""

    def __init__(self, message: str = "Database temporarily unavailable. Please try again."):
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="STORAGE_ERROR",
        )


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
) -> JSONResponse:
    """Create standardized error response."""
    content = {
        "error": {
            "code": error_code,
            "message": message,
        }
    }

    if details:
        content["error"]["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content,
    )


async def pallettrack_exception_handler(
    request: Request,
    exc: PalletTrackError,
) -> JSONResponse:
    """Handle PalletTrack error kinds."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "%s on %s %s: %s",
        exc.error_code,
        request.method,
        request.url.path,
        exc.message,
    )

    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details,
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    """Handle FastAPI HTTP exceptions."""
    if exc.status_code >= 500:
        logger.error(
            "HTTP %s on %s %s: %s",
            exc.status_code,
            request.method,
            request.url.path,
            exc.detail,
        )

    return create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=f"HTTP_{exc.status_code}",
    )


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, PydanticValidationError],
) -> JSONResponse:
    """Handle request body / query validation errors."""
    logger.warning("Validation error on %s %s", request.method, request.url.path)

    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    return create_error_response(
        status_code=422,
        message="Validation error",
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle all other unhandled exceptions."""
    logger.error(
        "Unhandled exception on %s: %s\n%s",
        request.url.path,
        exc,
        traceback.format_exc(),
    )

    # Internal details stay in the log
    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    """Register all custom exception handlers with FastAPI app."""
    app.add_exception_handler(PalletTrackError, pallettrack_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PydanticValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

"""Global exception handlers for consistent error responses.

Design:
- ValidationAppError → 400 (client fault, logged at info)
- ItemNotFoundError → 500 (kept as a server error, logged at warning)
- StorageAppError / SerializationAppError → 500 (logged as errors)
- Unexpected Exception → generic 500 with no internals (safety net)
- All responses include request_id for log correlation
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from crafting_api.core.errors import (
    AppError,
    ItemNotFoundError,
    SerializationAppError,
    StorageAppError,
    ValidationAppError,
)
from crafting_api.core.logging import get_request_id

logger = logging.getLogger(__name__)

# Checked in order; first match wins
_STATUS_BY_ERROR: tuple[tuple[type[AppError], int, int], ...] = (
    (ValidationAppError, 400, logging.INFO),
    (ItemNotFoundError, 500, logging.WARNING),
    (StorageAppError, 500, logging.ERROR),
    (SerializationAppError, 500, logging.ERROR),
)


def _classify(exc: AppError) -> tuple[int, int]:
    for error_type, status_code, log_level in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code, log_level
    return 500, logging.ERROR


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    All responses include:
    - error.code: Machine-readable error code
    - error.message: Human-readable message
    - error.request_id: For log correlation
    - error.details: Optional structured context

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code, log_level = _classify(exc)

    logger.log(
        log_level,
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "request_path": request.url.path,
            "request_id": get_request_id(),
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors.

    Logs the failure server-side and returns a generic message, so no stack
    trace or implementation detail reaches the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)

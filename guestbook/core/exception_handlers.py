"""Global exception handlers for consistent error responses.

Every failure leaves the service as ``{"error": "<message>"}`` with a status
code chosen from the error type. Request ids travel in the response header
set by the request id middleware.

Design:
- DuplicateNickError → 400 (constraint violation text)
- UnauthorizedError → 401
- VisitorNotFoundError → 404
- RateLimitExceededError → 429 (fixed message, Retry-After headers)
- StoreError → 500 (driver message, never SQL text)
- Unexpected Exception → generic 500 (safety net)
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from guestbook.core.errors import (
    AppError,
    DuplicateNickError,
    RateLimitExceededError,
    StoreError,
    UnauthorizedError,
    VisitorNotFoundError,
)
from guestbook.core.logging import get_request_id

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: dict[type[AppError], int] = {
    DuplicateNickError: 400,
    UnauthorizedError: 401,
    VisitorNotFoundError: 404,
    RateLimitExceededError: 429,
    StoreError: 500,
}

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."


def status_for(exc: AppError) -> int:
    """Return the HTTP status for an application error (500 if unmapped)."""
    for error_type in type(exc).__mro__:
        if error_type in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[error_type]
    return 500


def error_response(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message},
        headers=headers or None,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with the mapped status code and the error message.
    """
    status_code = status_for(exc)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "error_details": exc.details or {},
            "request_path": request.url.path,
            "request_id": get_request_id(),
        },
    )

    return error_response(status_code, exc.message, exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as 422 with the first problem found."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request")
        if location:
            message = f"{location}: {message}"
    else:
        message = "Invalid request"

    logger.info(
        "request_validation_failed",
        extra={
            "error_count": len(errors),
            "request_path": request.url.path,
            "request_id": get_request_id(),
        },
    )

    return error_response(422, message)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Keep framework errors (unknown route, wrong method) in the same shape."""
    return error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic message,
    so no stack trace or internal text reaches the client.
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

    return error_response(500, GENERIC_ERROR_MESSAGE)


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app.

    Args:
        app: FastAPI application instance.

    Example:
        >>> from fastapi import FastAPI
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)

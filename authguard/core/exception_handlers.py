"""Global exception handlers for consistent error responses.

Design:
- AppError subclasses → appropriate HTTP status (400, 403, 429)
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for distributed tracing
"""

from __future__ import annotations

import logging
import math

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from authguard.core.config import settings
from authguard.core.errors import (
    AppError,
    AuthenticationAppError,
    RateLimitedAppError,
    ValidationAppError,
)
from authguard.core.logging import get_request_id

logger = logging.getLogger(__name__)


def _status_for(exc: AppError) -> int:
    if isinstance(exc, RateLimitedAppError):
        return 429
    if isinstance(exc, AuthenticationAppError):
        return 403
    if isinstance(exc, ValidationAppError):
        return 400
    return 400


def _rate_limit_headers(exc: RateLimitedAppError) -> dict[str, str]:
    details = exc.details or {}
    headers = {"Retry-After": str(math.ceil(details.get("retry_after") or 0))}

    if settings.rate_limit.include_headers:
        if details.get("limit") is not None:
            headers["X-RateLimit-Limit"] = str(details["limit"])
        headers["X-RateLimit-Remaining"] = str(details.get("remaining_attempts", 0))
        if details.get("reset_at") is not None:
            headers["X-RateLimit-Reset"] = str(math.ceil(details["reset_at"]))
    return headers


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Routes domain errors to appropriate HTTP status codes:
    - ValidationAppError → 400 Bad Request (client fault)
    - AuthenticationAppError → 403 Forbidden (authorization fault)
    - RateLimitedAppError → 429 Too Many Requests, with Retry-After

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = _status_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    headers = _rate_limit_headers(exc) if isinstance(exc, RateLimitedAppError) else None

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs the failure with its traceback and returns a generic message, so no
    implementation details reach the client.
    """
    logger.error(
        "unhandled_exception",
        exc_info=exc,
        extra={
            "error_type": type(exc).__name__,
            "request_path": request.url.path,
            "request_method": request.method,
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


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app.

    Specific handlers are registered before the general fallback.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)

"""Global exception handlers for consistent error responses.

Design:
- AppError subclasses → 400, 403, 404, 429 or 502
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for distributed tracing
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from storefront.core.config import settings
from storefront.core.errors import (
    AppError,
    AuthenticationAppError,
    NotFoundAppError,
    RateLimitedAppError,
    UpstreamAppError,
)
from storefront.core.logging import get_request_id

logger = logging.getLogger(__name__)


def _status_for(exc: AppError) -> int:
    if isinstance(exc, AuthenticationAppError):
        return 403
    if isinstance(exc, NotFoundAppError):
        return 404
    if isinstance(exc, RateLimitedAppError):
        return 429
    if isinstance(exc, UpstreamAppError):
        return 502
    return 400


def _rate_limit_headers(exc: RateLimitedAppError) -> dict[str, str]:
    headers = {"Retry-After": str(exc.retry_after_seconds)}
    if settings.rate_limit.include_headers and exc.details:
        if "limit" in exc.details:
            headers["X-RateLimit-Limit"] = str(exc.details["limit"])
        if "remaining" in exc.details:
            headers["X-RateLimit-Remaining"] = str(exc.details["remaining"])
    return headers


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Routes domain errors to HTTP status codes:
    - ValidationAppError → 400 Bad Request
    - AuthenticationAppError → 403 Forbidden
    - NotFoundAppError → 404 Not Found
    - RateLimitedAppError → 429 Too Many Requests (+ Retry-After)
    - UpstreamAppError → 502 Bad Gateway

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

    headers = _rate_limit_headers(exc) if isinstance(exc, RateLimitedAppError) else None

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs the failure and returns a generic message; no stack traces or
    upstream text reach the client.
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
    """Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)

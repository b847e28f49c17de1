"""HTTP middleware for request ID propagation and access logging.

Accepts an incoming correlation header (``X-Request-ID`` by default) or
generates a UUID, stores it in contextvars for log correlation, and echoes it
together with the handler duration on the response. Each request also emits
one ``http.request`` log event; the client address is never logged.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from storefront.core.config import settings
from storefront.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)

_QUIET_PATHS = frozenset({"/health"})


def _resolve_request_id(request: Request, header_name: str) -> str:
    incoming = (request.headers.get(header_name) or "").strip()
    # ids longer than 128 chars are replaced
    if incoming and len(incoming) <= 128:
        return incoming
    return str(uuid.uuid4())


async def request_id_middleware(request: Request, call_next) -> Response:
    """Attach a correlation id to the request context and response headers.

    For streamed responses the duration covers handler time up to the first
    byte, not the full stream.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response with ``X-Request-ID`` and ``X-Request-Duration-ms`` headers.
    """

    header_name = settings.log.request_id_header
    request_id = _resolve_request_id(request, header_name)
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        if request.url.path not in _QUIET_PATHS:
            logger.info(
                "http.request",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                    "streamed": response.headers.get("content-type", "").startswith("text/plain"),
                },
            )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers["X-Request-Duration-ms"] = f"{duration_ms:.2f}"
    return response

"""Admin token authentication.

The admin endpoints (cache invalidation, limiter inspection and reset) are
guarded by one shared token from ``APP_ADMIN_TOKEN``, sent in the
``X-Admin-Token`` header. When no token is configured the admin surface is
closed rather than open.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Annotated

from fastapi import Header

from storefront.core.config import settings
from storefront.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)


def validate_admin_token(provided_token: str | None) -> None:
    """Check ``provided_token`` against the configured admin token.

    Args:
        provided_token: Token sent by the client, if any.

    Raises:
        AuthenticationAppError: If no token is configured or the token does not match.
    """
    expected = settings.app.admin_token

    if not expected:
        logger.error(
            "admin_auth_failed",
            extra={"reason": "admin_token_not_configured"},
        )
        raise AuthenticationAppError(
            code="admin_token_not_configured",
            message="Admin endpoints are disabled because no admin token is configured",
            details={"hint": "Set APP_ADMIN_TOKEN to enable the admin endpoints"},
        )

    if not provided_token or not hmac.compare_digest(provided_token, expected):
        logger.warning(
            "admin_auth_failed",
            extra={
                "reason": "invalid_admin_token" if provided_token else "missing_admin_token",
                "token_hash": hashlib.sha256((provided_token or "").encode()).hexdigest()[:16],
            },
        )
        raise AuthenticationAppError(
            code="invalid_admin_token",
            message="Invalid or missing admin token",
        )


async def verify_admin_token(
    x_admin_token: Annotated[str | None, Header(alias="X-Admin-Token")] = None,
) -> None:
    """FastAPI dependency for admin authentication.

    Usage:
        @router.post("/admin/thing", dependencies=[Depends(verify_admin_token)])

    Raises:
        AuthenticationAppError: Rendered as 403 by the exception handlers.
    """
    validate_admin_token(x_admin_token)
    logger.info("admin_auth.success")

"""Rate limiting glue for FastAPI routes.

Routes build their limiter key from the client identity dependency below and
the per-endpoint policy resolved from settings, then hand both to the
governor. Keys are per client *and* per resource, so browsing many products
does not exhaust one shared budget.

Client identity is the first address of ``X-Forwarded-For``; requests without
it share the ``"unknown"`` bucket.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Header

from storefront.core.config import settings
from storefront.services.governor import RateLimitPolicy, client_identity

_ENDPOINT_BUDGETS = {
    "summary": "summary_requests",
    "insights": "insights_requests",
    "compare": "compare_requests",
    "recommendations": "recommendations_requests",
}


def policy_for(endpoint: str) -> RateLimitPolicy:
    """Resolve the configured budget for ``endpoint``.

    Raises:
        KeyError: If the endpoint has no configured budget.
    """

    field_name = _ENDPOINT_BUDGETS[endpoint]
    return RateLimitPolicy(
        endpoint=endpoint,
        max_requests=getattr(settings.rate_limit, field_name),
        window_seconds=settings.rate_limit.window_seconds,
    )


async def get_client_identity(
    x_forwarded_for: Annotated[str | None, Header(alias="X-Forwarded-For")] = None,
) -> str:
    """FastAPI dependency returning the caller's identity for limiter keys."""

    return client_identity(x_forwarded_for)

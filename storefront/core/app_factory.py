"""Application factory for FastAPI app.

Builds the process-wide limiter, cache and relay once per app and hands them
to the routes through ``app.state``; collaborators can be injected for tests.
"""

from __future__ import annotations

from fastapi import FastAPI

from storefront.adapters.catalog.base import AbstractProductCatalog
from storefront.adapters.catalog.in_memory import InMemoryProductCatalog
from storefront.adapters.llm.base import AbstractLLMClient
from storefront.adapters.llm.factory import create_llm_client
from storefront.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from storefront.api.routes import admin_router, health_router, reviews_router
from storefront.core.clock import Clock, MonotonicClock
from storefront.core.config import settings
from storefront.core.exception_handlers import setup_exception_handlers
from storefront.core.logging import configure_logging
from storefront.core.middleware import request_id_middleware
from storefront.core.openapi import apply_openapi_customizations
from storefront.services.governor import RequestGovernor
from storefront.services.review_ai_service import ReviewAIService
from storefront.utils.tagged_cache import TaggedCache


def build_governor(clock: Clock | None = None) -> RequestGovernor:
    """Build a governor from settings with fresh limiter and cache state."""

    clock = clock or MonotonicClock()
    return RequestGovernor(
        limiter=InMemorySlidingWindowRateLimiter(clock=clock),
        cache=TaggedCache(
            ttl_seconds=settings.cache.ttl_seconds,
            max_entries=settings.cache.max_entries,
            clock=clock,
        ),
        rate_limit_enabled=settings.rate_limit.enabled,
        stream_buffer_chunks=settings.app.stream_buffer_chunks,
    )


def create_app(
    *,
    llm: AbstractLLMClient | None = None,
    catalog: AbstractProductCatalog | None = None,
    governor: RequestGovernor | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        llm: LLM client; built from settings when omitted.
        catalog: Product catalog; bundled sample catalog when omitted.
        governor: Pre-built governor; built from settings when omitted.
        clock: Time source for limiter and cache when building the governor.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Storefront AI API",
        description=(
            "AI-generated review summaries, insights, comparisons and "
            "recommendations for storefront products. Streamed responses are "
            "chunked text; cacheable artifacts are JSON. All AI endpoints are "
            "rate limited per client with a sliding window."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )

    app.state.governor = governor or build_governor(clock)
    app.state.catalog = catalog or InMemoryProductCatalog()
    app.state.review_service = ReviewAIService(llm=llm or create_llm_client())

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(reviews_router)
    app.include_router(admin_router)
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app

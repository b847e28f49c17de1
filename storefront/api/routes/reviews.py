"""AI-backed product review endpoints.

Every handler follows the same order: validate query parameters (400),
resolve products (404), consume the rate-limit budget (429), and only then
touch the cache or the model.
"""

import asyncio
from typing import Annotated, AsyncIterator

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from storefront.adapters.catalog.base import AbstractProductCatalog
from storefront.api.dependencies import get_catalog, get_governor, get_review_service
from storefront.core.errors import ValidationAppError
from storefront.core.rate_limit import get_client_identity, policy_for
from storefront.schemas.insights import ReviewInsightsResponse, ReviewSummaryResponse
from storefront.schemas.product import Product
from storefront.services.governor import RequestGovernor, limiter_key
from storefront.services.review_ai_service import ReviewAIService

router = APIRouter(prefix="/api", tags=["Reviews"])

Governor = Annotated[RequestGovernor, Depends(get_governor)]
Catalog = Annotated[AbstractProductCatalog, Depends(get_catalog)]
ReviewAI = Annotated[ReviewAIService, Depends(get_review_service)]
ClientId = Annotated[str, Depends(get_client_identity)]


def _text_stream(chunks: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(
        chunks,
        media_type="text/plain; charset=utf-8",
        headers={"Cache-Control": "no-store", "X-Accel-Buffering": "no"},
    )


@router.get("/products", response_model=list[Product])
async def list_products(catalog: Catalog, search: str | None = None) -> list[Product]:
    """List catalog products, optionally filtered by name/description."""
    return await catalog.list_products(search)


@router.get(
    "/summary/{slug}",
    response_class=StreamingResponse,
    responses={200: {"content": {"text/plain": {}}}},
)
async def stream_summary(
    slug: str,
    governor: Governor,
    catalog: Catalog,
    review_ai: ReviewAI,
    client: ClientId,
) -> StreamingResponse:
    """Stream a review summary for one product.

    Re-requesting the summary for the same product from the same client
    cancels the stream already in progress.
    """
    product = await catalog.get_product(slug)

    key = limiter_key(client, "summary", slug)
    governor.admit(key, policy_for("summary"))

    chunks = governor.stream(key, lambda token: review_ai.stream_summary(product, token))
    return _text_stream(chunks)


@router.get("/summary/{slug}/text", response_model=ReviewSummaryResponse)
async def summary_text(
    slug: str,
    governor: Governor,
    catalog: Catalog,
    review_ai: ReviewAI,
    client: ClientId,
) -> ReviewSummaryResponse:
    """Return the cached (or freshly generated) review summary as JSON."""
    product = await catalog.get_product(slug)

    governor.admit(limiter_key(client, "summary", slug), policy_for("summary"))

    summary, cached = await governor.get_or_compute(
        slug,
        "summary",
        lambda: review_ai.summarize_reviews(product),
    )
    return ReviewSummaryResponse(slug=slug, summary=summary, cached=cached)


@router.get("/insights/{slug}", response_model=ReviewInsightsResponse)
async def review_insights(
    slug: str,
    governor: Governor,
    catalog: Catalog,
    review_ai: ReviewAI,
    client: ClientId,
) -> ReviewInsightsResponse:
    """Return pros, cons and themes extracted from a product's reviews."""
    product = await catalog.get_product(slug)

    governor.admit(limiter_key(client, "insights", slug), policy_for("insights"))

    insights, cached = await governor.get_or_compute(
        slug,
        "insights",
        lambda: review_ai.review_insights(product),
    )
    return ReviewInsightsResponse(**insights.model_dump(), slug=slug, cached=cached)


@router.get(
    "/compare",
    response_class=StreamingResponse,
    responses={200: {"content": {"text/plain": {}}}},
)
async def stream_comparison(
    governor: Governor,
    catalog: Catalog,
    review_ai: ReviewAI,
    client: ClientId,
    x: Annotated[str | None, Query(description="First product slug")] = None,
    y: Annotated[str | None, Query(description="Second product slug")] = None,
) -> StreamingResponse:
    """Stream a comparison of the reviews of two products."""
    if not x or not y:
        raise ValidationAppError(
            code="missing_query_params",
            message="Missing x or y query params",
            details={"param": "x" if not x else "y"},
        )

    product_a, product_b = await asyncio.gather(catalog.get_product(x), catalog.get_product(y))

    key = limiter_key(client, "compare", x, y)
    governor.admit(key, policy_for("compare"))

    chunks = governor.stream(
        key,
        lambda token: review_ai.stream_comparison(product_a, product_b, token),
    )
    return _text_stream(chunks)


@router.get(
    "/recommendations",
    response_class=StreamingResponse,
    responses={200: {"content": {"text/plain": {}}}},
)
async def stream_recommendations(
    governor: Governor,
    catalog: Catalog,
    review_ai: ReviewAI,
    client: ClientId,
    history: Annotated[str, Query(description="Comma-separated slugs of recently viewed products")] = "",
) -> StreamingResponse:
    """Stream product recommendations based on a viewing history."""
    slugs = [slug.strip() for slug in history.split(",") if slug.strip()]
    if not slugs:
        raise ValidationAppError(
            code="missing_history",
            message="No history provided",
            details={"param": "history"},
        )

    viewed = [await catalog.get_product(slug) for slug in slugs]
    viewed_slugs = {product.slug for product in viewed}
    candidates = [product for product in await catalog.list_products() if product.slug not in viewed_slugs]

    key = limiter_key(client, "recommendations")
    governor.admit(key, policy_for("recommendations"))

    chunks = governor.stream(
        key,
        lambda token: review_ai.stream_recommendations(viewed, candidates, token),
    )
    return _text_stream(chunks)

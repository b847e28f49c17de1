"""Admin endpoints: cache tag invalidation and rate limiter inspection."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from storefront.adapters.catalog.base import AbstractProductCatalog
from storefront.api.dependencies import get_catalog, get_governor
from storefront.core.auth import verify_admin_token
from storefront.schemas.admin import InvalidationResponse, LimiterResetResponse, LimiterStatResponse
from storefront.services.governor import RequestGovernor

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(verify_admin_token)],
)

Governor = Annotated[RequestGovernor, Depends(get_governor)]


@router.post("/cache/invalidate", response_model=InvalidationResponse)
async def invalidate_cache(
    governor: Governor,
    catalog: Annotated[AbstractProductCatalog, Depends(get_catalog)],
    slug: Annotated[str | None, Query(description="Product slug; omit to invalidate every product")] = None,
) -> InvalidationResponse:
    """Drop cached summaries and insights for one product, or for all of them."""
    extra = [] if slug else [product.slug for product in await catalog.list_products()]
    result = governor.invalidate(slug or None, extra_resources=extra)
    return InvalidationResponse(
        slug=slug or None,
        invalidated_tags=result.tags,
        removed_entries=result.removed_entries,
    )


@router.get("/cache/stats")
async def cache_stats(governor: Governor) -> dict:
    return governor.cache.stats()


@router.get("/rate-limit", response_model=list[LimiterStatResponse])
async def rate_limit_stats(governor: Governor) -> list[LimiterStatResponse]:
    """List limiter keys with their retained hit counts, busiest first."""
    return [LimiterStatResponse(key=stat.key, count=stat.count) for stat in governor.limiter_stats()]


@router.post("/rate-limit/reset", response_model=LimiterResetResponse)
async def reset_rate_limit(
    governor: Governor,
    key: Annotated[str | None, Query(description="Limiter key; omit to reset every key")] = None,
) -> LimiterResetResponse:
    governor.reset_limiter(key or None)
    return LimiterResetResponse(reset=key or "all")

from __future__ import annotations

from storefront.api.routes.admin import router as admin_router
from storefront.api.routes.health import router as health_router
from storefront.api.routes.reviews import router as reviews_router

__all__ = ["admin_router", "health_router", "reviews_router"]

"""FastAPI dependencies exposing the handles built by the app factory.

The governor, catalog and review service live on ``app.state`` rather than in
module globals, so each app instance (and each test) owns its own limiter and
cache state.
"""

from __future__ import annotations

from fastapi import Request

from storefront.adapters.catalog.base import AbstractProductCatalog
from storefront.services.governor import RequestGovernor
from storefront.services.review_ai_service import ReviewAIService


def get_governor(request: Request) -> RequestGovernor:
    return request.app.state.governor


def get_catalog(request: Request) -> AbstractProductCatalog:
    return request.app.state.catalog


def get_review_service(request: Request) -> ReviewAIService:
    return request.app.state.review_service

"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before anything imports the settings module,
so tests never depend on a local .env file.
"""

import asyncio
import os
from typing import Any, AsyncIterator

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("LLM_PROVIDER", "openai")
os.environ.setdefault("LLM_MODEL", "gpt-4o-mini")
os.environ.setdefault("LLM_API_KEY", "test-key-123")
os.environ.setdefault("APP_ADMIN_TOKEN", "test-admin-token")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from storefront.adapters.catalog.in_memory import InMemoryProductCatalog
from storefront.adapters.llm.base import AbstractLLMClient
from storefront.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from storefront.core.app_factory import create_app
from storefront.core.clock import ManualClock
from storefront.schemas.product import Product, Review
from storefront.services.governor import RequestGovernor
from storefront.utils.tagged_cache import TaggedCache


class FakeLLM(AbstractLLMClient):
    """Scriptable LLM client that records how often each call runs."""

    def __init__(
        self,
        *,
        text: str = "Customers like the widget.",
        chunks: list[str] | None = None,
        insights: dict[str, Any] | None = None,
        fail_after: int | None = None,
        chunk_delay: float = 0.0,
    ) -> None:
        self.text = text
        self.chunks = chunks if chunks is not None else ["Customers ", "like ", "it."]
        self.insights = insights or {"pros": ["sturdy"], "cons": ["heavy"], "themes": ["value"]}
        self.fail_after = fail_after
        self.chunk_delay = chunk_delay
        self.text_calls = 0
        self.json_calls = 0
        self.stream_calls = 0
        self.prompts: list[str] = []

    async def generate_text(self, prompt: str, **kwargs: Any) -> str:
        self.text_calls += 1
        self.prompts.append(prompt)
        return self.text

    async def stream_text(self, prompt: str, **kwargs: Any) -> AsyncIterator[str]:
        self.stream_calls += 1
        self.prompts.append(prompt)
        for index, chunk in enumerate(self.chunks):
            if self.fail_after is not None and index >= self.fail_after:
                raise RuntimeError("provider exploded: secret upstream detail")
            if self.chunk_delay:
                await asyncio.sleep(self.chunk_delay)
            yield chunk

    async def generate_json(self, prompt: str, *, schema=None, **kwargs: Any) -> dict[str, Any]:
        self.json_calls += 1
        self.prompts.append(prompt)
        return dict(self.insights)


def make_product(slug: str = "widget", name: str = "Widget", stars: tuple[int, ...] = (5, 4, 3)) -> Product:
    return Product(
        slug=slug,
        name=name,
        description=f"A {name.lower()} for testing.",
        reviews=[
            Review(reviewer=f"r{i}", stars=s, review=f"{name} review {i}", date="2024-01-01")
            for i, s in enumerate(stars, start=1)
        ],
    )


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=1_000.0)


@pytest.fixture
def products() -> list[Product]:
    return [
        make_product("widget", "Widget"),
        make_product("gadget", "Gadget", (2, 3)),
        make_product("gizmo", "Gizmo", (5,)),
    ]


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def governor(clock: ManualClock) -> RequestGovernor:
    return RequestGovernor(
        limiter=InMemorySlidingWindowRateLimiter(clock=clock),
        cache=TaggedCache(ttl_seconds=3600, clock=clock),
    )


@pytest.fixture
def client(fake_llm: FakeLLM, products: list[Product], governor: RequestGovernor) -> TestClient:
    app = create_app(
        llm=fake_llm,
        catalog=InMemoryProductCatalog(products),
        governor=governor,
    )
    return TestClient(app)


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Token": "test-admin-token"}

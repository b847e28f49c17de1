"""Tests for the admin endpoints (cache invalidation and limiter control)."""

import pytest
from fastapi.testclient import TestClient

from conftest import FakeLLM
from storefront.services.governor import RequestGovernor


@pytest.mark.parametrize(
    "method,path",
    [
        ("post", "/admin/cache/invalidate"),
        ("get", "/admin/cache/stats"),
        ("get", "/admin/rate-limit"),
        ("post", "/admin/rate-limit/reset"),
    ],
)
def test_admin_endpoints_require_token(client: TestClient, method: str, path: str) -> None:
    missing = getattr(client, method)(path)
    wrong = getattr(client, method)(path, headers={"X-Admin-Token": "nope"})

    assert missing.status_code == 403
    assert wrong.status_code == 403
    assert wrong.json()["error"]["code"] == "invalid_admin_token"


class TestCacheInvalidation:
    def test_invalidate_one_product(
        self, client: TestClient, fake_llm: FakeLLM, admin_headers: dict[str, str]
    ) -> None:
        client.get("/api/insights/widget")
        client.get("/api/insights/gadget")

        response = client.post("/admin/cache/invalidate", params={"slug": "widget"}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {
            "slug": "widget",
            "invalidated_tags": ["summary:widget", "insights:widget"],
            "removed_entries": 1,
        }

        assert client.get("/api/insights/widget").json()["cached"] is False
        assert client.get("/api/insights/gadget").json()["cached"] is True
        assert fake_llm.json_calls == 3

    def test_invalidate_all_products(
        self, client: TestClient, fake_llm: FakeLLM, admin_headers: dict[str, str]
    ) -> None:
        client.get("/api/insights/widget")
        client.get("/api/summary/gizmo/text")

        response = client.post("/admin/cache/invalidate", headers=admin_headers)

        body = response.json()
        assert body["slug"] is None
        assert body["removed_entries"] == 2
        assert set(body["invalidated_tags"]) == {
            f"{kind}:{slug}" for kind in ("summary", "insights") for slug in ("widget", "gadget", "gizmo")
        }
        assert client.get("/api/insights/widget").json()["cached"] is False
        assert client.get("/api/summary/gizmo/text").json()["cached"] is False

    def test_invalidation_does_not_touch_rate_limits(
        self, client: TestClient, governor: RequestGovernor, admin_headers: dict[str, str]
    ) -> None:
        client.get("/api/insights/widget")

        client.post("/admin/cache/invalidate", params={"slug": "widget"}, headers=admin_headers)

        assert [(s.key, s.count) for s in governor.limiter_stats()] == [("unknown:insights:widget", 1)]

    def test_cache_stats(self, client: TestClient, admin_headers: dict[str, str]) -> None:
        client.get("/api/insights/widget")
        client.get("/api/insights/widget")

        stats = client.get("/admin/cache/stats", headers=admin_headers).json()

        assert stats["entries"] == 1
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["in_flight"] == 0


class TestRateLimitAdmin:
    def test_stats_listed_busiest_first(self, client: TestClient, admin_headers: dict[str, str]) -> None:
        client.get("/api/insights/widget", headers={"X-Forwarded-For": "ip1"})
        client.get("/api/insights/gadget", headers={"X-Forwarded-For": "ip2"})
        client.get("/api/insights/gadget", headers={"X-Forwarded-For": "ip2"})

        response = client.get("/admin/rate-limit", headers=admin_headers)

        assert response.json() == [
            {"key": "ip2:insights:gadget", "count": 2},
            {"key": "ip1:insights:widget", "count": 1},
        ]

    def test_reset_single_key_unblocks_client(self, client: TestClient, admin_headers: dict[str, str]) -> None:
        headers = {"X-Forwarded-For": "ip1"}
        for _ in range(10):
            client.get("/api/insights/widget", headers=headers)
        assert client.get("/api/insights/widget", headers=headers).status_code == 429

        response = client.post(
            "/admin/rate-limit/reset",
            params={"key": "ip1:insights:widget"},
            headers=admin_headers,
        )

        assert response.json() == {"reset": "ip1:insights:widget"}
        assert client.get("/api/insights/widget", headers=headers).status_code == 200

    def test_reset_all(self, client: TestClient, governor: RequestGovernor, admin_headers: dict[str, str]) -> None:
        client.get("/api/insights/widget", headers={"X-Forwarded-For": "ip1"})
        client.get("/api/insights/widget", headers={"X-Forwarded-For": "ip2"})

        response = client.post("/admin/rate-limit/reset", headers=admin_headers)

        assert response.json() == {"reset": "all"}
        assert governor.limiter_stats() == []


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "active_streams": 0}

"""Tests for the AI review endpoints.

Uses the shared ``client`` fixture from conftest.py: a fresh app per test with
a scripted FakeLLM, a three-product catalog and a governor on a manual clock,
so limiter windows and cache TTLs never depend on wall time.
"""

from fastapi.testclient import TestClient

from conftest import FakeLLM
from storefront.services.governor import STREAM_ERROR_MESSAGE, RequestGovernor

CLIENT_A = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
CLIENT_B = {"X-Forwarded-For": "198.51.100.4"}


class TestProducts:
    def test_list_products(self, client: TestClient) -> None:
        response = client.get("/api/products")

        assert response.status_code == 200
        assert [p["slug"] for p in response.json()] == ["widget", "gadget", "gizmo"]

    def test_search_products(self, client: TestClient) -> None:
        response = client.get("/api/products", params={"search": "GAD"})

        assert [p["slug"] for p in response.json()] == ["gadget"]


class TestSummaryStream:
    def test_streams_summary_text(self, client: TestClient, fake_llm: FakeLLM) -> None:
        response = client.get("/api/summary/widget", headers=CLIENT_A)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.headers["cache-control"] == "no-store"
        assert response.text == "Customers like it."
        assert fake_llm.stream_calls == 1
        assert "Widget" in fake_llm.prompts[0]

    def test_streams_are_never_cached(self, client: TestClient, fake_llm: FakeLLM) -> None:
        client.get("/api/summary/widget", headers=CLIENT_A)
        client.get("/api/summary/widget", headers=CLIENT_A)

        assert fake_llm.stream_calls == 2

    def test_unknown_product_is_404(self, client: TestClient, governor: RequestGovernor) -> None:
        response = client.get("/api/summary/does-not-exist", headers=CLIENT_A)

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "product_not_found"
        assert error["details"]["slug"] == "does-not-exist"
        # lookups fail before any budget is spent
        assert governor.limiter_stats() == []

    def test_upstream_failure_mid_stream_ends_with_generic_line(
        self, client: TestClient, fake_llm: FakeLLM
    ) -> None:
        fake_llm.fail_after = 1

        response = client.get("/api/summary/widget", headers=CLIENT_A)

        assert response.status_code == 200
        assert response.text == "Customers " + STREAM_ERROR_MESSAGE
        assert "secret upstream detail" not in response.text

    def test_session_released_after_stream(self, client: TestClient, governor: RequestGovernor) -> None:
        client.get("/api/summary/widget", headers=CLIENT_A)

        assert client.get("/health").json() == {"status": "ok", "active_streams": 0}
        assert governor.sessions.active_count() == 0


class TestSummaryText:
    def test_second_request_is_served_from_cache(self, client: TestClient, fake_llm: FakeLLM) -> None:
        first = client.get("/api/summary/widget/text", headers=CLIENT_A)
        second = client.get("/api/summary/widget/text", headers=CLIENT_B)

        assert first.status_code == 200
        assert first.json() == {"slug": "widget", "summary": "Customers like the widget.", "cached": False}
        assert second.json()["cached"] is True
        assert fake_llm.text_calls == 1

    def test_model_quotes_and_word_counts_are_stripped(self, client: TestClient, fake_llm: FakeLLM) -> None:
        fake_llm.text = '"Customers mention sturdy build. (12 words)"'

        response = client.get("/api/summary/gadget/text")

        assert response.json()["summary"] == "Customers mention sturdy build. "

    def test_shares_budget_with_streamed_summary(self, client: TestClient, governor: RequestGovernor) -> None:
        client.get("/api/summary/widget", headers=CLIENT_A)
        client.get("/api/summary/widget/text", headers=CLIENT_A)

        stats = {stat.key: stat.count for stat in governor.limiter_stats()}
        assert stats == {"203.0.113.7:summary:widget": 2}


class TestInsights:
    def test_insights_cached_after_first_call(self, client: TestClient, fake_llm: FakeLLM) -> None:
        first = client.get("/api/insights/widget")
        second = client.get("/api/insights/widget")

        assert first.status_code == 200
        assert first.json() == {
            "pros": ["sturdy"],
            "cons": ["heavy"],
            "themes": ["value"],
            "slug": "widget",
            "cached": False,
        }
        assert second.json()["cached"] is True
        assert fake_llm.json_calls == 1

    def test_invalid_model_output_is_502_and_not_cached(self, client: TestClient, fake_llm: FakeLLM) -> None:
        fake_llm.insights = {"pros": "not a list"}

        response = client.get("/api/insights/widget")

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "upstream_failed"
        assert error["message"] == "Unable to extract review insights. Please try again."

        fake_llm.insights = {"pros": ["light"], "cons": [], "themes": []}
        retry = client.get("/api/insights/widget")

        assert retry.status_code == 200
        assert retry.json()["pros"] == ["light"]
        assert fake_llm.json_calls == 2


class TestRateLimiting:
    def test_eleventh_request_in_window_is_429(self, client: TestClient) -> None:
        for _ in range(10):
            assert client.get("/api/insights/widget", headers=CLIENT_A).status_code == 200

        response = client.get("/api/insights/widget", headers=CLIENT_A)

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "60"
        assert response.headers["X-RateLimit-Limit"] == "10"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        error = response.json()["error"]
        assert error["code"] == "rate_limited"
        assert error["details"]["retry_after_seconds"] == 60

    def test_budget_is_per_client_and_product(self, client: TestClient) -> None:
        for _ in range(10):
            client.get("/api/insights/widget", headers=CLIENT_A)

        assert client.get("/api/insights/widget", headers=CLIENT_A).status_code == 429
        assert client.get("/api/insights/gadget", headers=CLIENT_A).status_code == 200
        assert client.get("/api/insights/widget", headers=CLIENT_B).status_code == 200

    def test_window_slides(self, client: TestClient, clock) -> None:
        for _ in range(10):
            client.get("/api/insights/widget", headers=CLIENT_A)
            clock.advance(1)

        blocked = client.get("/api/insights/widget", headers=CLIENT_A)
        assert blocked.status_code == 429
        assert blocked.headers["Retry-After"] == "50"

        clock.advance(50)
        assert client.get("/api/insights/widget", headers=CLIENT_A).status_code == 200

    def test_missing_forwarded_for_uses_unknown_bucket(
        self, client: TestClient, governor: RequestGovernor
    ) -> None:
        client.get("/api/insights/widget")

        assert [stat.key for stat in governor.limiter_stats()] == ["unknown:insights:widget"]

    def test_throttled_stream_never_calls_model(self, client: TestClient, fake_llm: FakeLLM) -> None:
        for _ in range(10):
            client.get("/api/summary/gizmo", headers=CLIENT_A)

        response = client.get("/api/summary/gizmo", headers=CLIENT_A)

        assert response.status_code == 429
        assert fake_llm.stream_calls == 10


class TestCompare:
    def test_missing_param_is_400(self, client: TestClient) -> None:
        response = client.get("/api/compare", params={"x": "widget"})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "missing_query_params"
        assert error["message"] == "Missing x or y query params"

    def test_unknown_product_is_404(self, client: TestClient) -> None:
        response = client.get("/api/compare", params={"x": "widget", "y": "nope"})

        assert response.status_code == 404

    def test_streams_comparison(self, client: TestClient, fake_llm: FakeLLM, governor: RequestGovernor) -> None:
        response = client.get("/api/compare", params={"x": "widget", "y": "gadget"}, headers=CLIENT_A)

        assert response.status_code == 200
        assert response.text == "Customers like it."
        assert "Widget" in fake_llm.prompts[0] and "Gadget" in fake_llm.prompts[0]
        assert [stat.key for stat in governor.limiter_stats()] == ["203.0.113.7:compare:widget:gadget"]


class TestRecommendations:
    def test_missing_history_is_400(self, client: TestClient) -> None:
        response = client.get("/api/recommendations")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "missing_history"

    def test_blank_history_is_400(self, client: TestClient) -> None:
        response = client.get("/api/recommendations", params={"history": " , ,"})

        assert response.status_code == 400

    def test_streams_recommendations_excluding_history(
        self, client: TestClient, fake_llm: FakeLLM, governor: RequestGovernor
    ) -> None:
        response = client.get("/api/recommendations", params={"history": "widget"}, headers=CLIENT_A)

        assert response.status_code == 200
        prompt = fake_llm.prompts[0]
        candidates = prompt.split("Available candidates")[1]
        assert "Gadget" in candidates and "Gizmo" in candidates
        assert "Widget" not in candidates
        assert [stat.key for stat in governor.limiter_stats()] == ["203.0.113.7:recommendations"]

    def test_unknown_history_product_is_404(self, client: TestClient) -> None:
        response = client.get("/api/recommendations", params={"history": "widget,ghost"})

        assert response.status_code == 404

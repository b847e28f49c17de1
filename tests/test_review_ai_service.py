"""Tests for ReviewAIService prompts, cleanup and failure handling."""

import pytest

from conftest import FakeLLM, make_product
from storefront.core.errors import UpstreamAppError
from storefront.schemas.insights import ReviewInsights
from storefront.services.review_ai_service import (
    ReviewAIService,
    build_comparison_prompt,
    build_insights_prompt,
    build_recommendations_prompt,
    build_summary_prompt,
    clean_summary,
)
from storefront.services.stream_relay import CancellationToken


class ExplodingLLM(FakeLLM):
    async def generate_text(self, prompt: str, **kwargs) -> str:
        raise RuntimeError("401 invalid api key sk-live-abc")

    async def generate_json(self, prompt: str, *, schema=None, **kwargs):
        raise RuntimeError("quota exceeded for org-123")


class TestPrompts:
    def test_summary_prompt_includes_reviews_and_rating(self) -> None:
        product = make_product("widget", "Widget", (5, 4, 3))

        prompt = build_summary_prompt(product)

        assert "Widget product" in prompt
        assert "average rating is 4 out of 5" in prompt
        assert "Review 1:\nWidget review 1" in prompt
        assert "Review 3:\nWidget review 3" in prompt

    def test_comparison_prompt_lists_both_products(self) -> None:
        prompt = build_comparison_prompt(
            make_product("widget", "Widget", (5, 4)),
            make_product("gadget", "Gadget", (2,)),
        )

        assert "Widget (average rating: 4.5/5)" in prompt
        assert "Gadget (average rating: 2.0/5)" in prompt
        assert "A1 (5★): Widget review 1" in prompt
        assert "B1 (2★): Gadget review 1" in prompt

    def test_insights_prompt_requests_json_keys(self) -> None:
        prompt = build_insights_prompt(make_product())

        assert '"pros", "cons" and "themes"' in prompt

    def test_recommendations_prompt_separates_history(self) -> None:
        prompt = build_recommendations_prompt(
            [make_product("widget", "Widget")],
            [make_product("gadget", "Gadget")],
        )

        history, candidates = prompt.split("Available candidates")
        assert "Widget" in history
        assert "Gadget" in candidates


@pytest.mark.parametrize(
    "raw,expected",
    [
        ('"Customers like it."', "Customers like it."),
        ("  Customers like it.  ", "Customers like it."),
        ("Customers like it. (9 words)", "Customers like it. "),
        ("Customers like it. [9 words]", "Customers like it. "),
        ("Customers mention value.", "Customers mention value."),
    ],
)
def test_clean_summary(raw: str, expected: str) -> None:
    assert clean_summary(raw) == expected


class TestCacheableArtifacts:
    @pytest.mark.asyncio
    async def test_summarize_reviews_cleans_output(self) -> None:
        llm = FakeLLM(text='"Customers like the widget. (5 words)"')

        summary = await ReviewAIService(llm).summarize_reviews(make_product())

        assert summary == "Customers like the widget. "
        assert llm.text_calls == 1

    @pytest.mark.asyncio
    async def test_review_insights_validates_shape(self) -> None:
        llm = FakeLLM(insights={"pros": ["sturdy"], "cons": ["loud"], "themes": []})

        insights = await ReviewAIService(llm).review_insights(make_product())

        assert insights == ReviewInsights(pros=["sturdy"], cons=["loud"], themes=[])

    @pytest.mark.asyncio
    async def test_invalid_insights_become_upstream_error(self) -> None:
        llm = FakeLLM(insights={"pros": ["sturdy"]})

        with pytest.raises(UpstreamAppError) as exc_info:
            await ReviewAIService(llm).review_insights(make_product())

        assert exc_info.value.code == "upstream_failed"

    @pytest.mark.asyncio
    async def test_provider_errors_are_generic(self) -> None:
        service = ReviewAIService(ExplodingLLM())

        with pytest.raises(UpstreamAppError) as summary_exc:
            await service.summarize_reviews(make_product())
        with pytest.raises(UpstreamAppError) as insights_exc:
            await service.review_insights(make_product())

        assert summary_exc.value.message == "Unable to generate review summary. Please try again."
        assert "sk-live-abc" not in str(summary_exc.value)
        assert insights_exc.value.message == "Unable to extract review insights. Please try again."
        assert "org-123" not in str(insights_exc.value)


class TestStreaming:
    @pytest.mark.asyncio
    async def test_stream_summary_yields_model_chunks(self) -> None:
        llm = FakeLLM(chunks=["Customers ", "like ", "it."])

        chunks = [c async for c in ReviewAIService(llm).stream_summary(make_product(), CancellationToken())]

        assert chunks == ["Customers ", "like ", "it."]
        assert llm.stream_calls == 1

    @pytest.mark.asyncio
    async def test_stream_stops_when_token_cancelled(self) -> None:
        llm = FakeLLM(chunks=["a", "b", "c", "d"])
        token = CancellationToken()
        received = []

        async for chunk in ReviewAIService(llm).stream_comparison(make_product(), make_product("g", "G"), token):
            received.append(chunk)
            if len(received) == 2:
                token.cancel("superseded")

        assert received == ["a", "b"]

    @pytest.mark.asyncio
    async def test_stream_recommendations_uses_history_prompt(self) -> None:
        llm = FakeLLM(chunks=["1. Gadget"])

        chunks = [
            c
            async for c in ReviewAIService(llm).stream_recommendations(
                [make_product()], [make_product("gadget", "Gadget")], CancellationToken()
            )
        ]

        assert chunks == ["1. Gadget"]
        assert "recommending products" in llm.prompts[0]

"""Review AI service: prompt construction and model calls for product pages.

Produces the AI artifacts shown next to products:
- review summaries (streamed, plus a cacheable plain-text variant)
- review insights (pros, cons, themes) as validated JSON
- product comparisons and recommendations (streamed)

Cacheable calls log start/success/error events with durations and convert any
provider failure into a generic ``UpstreamAppError``. Streaming generators stop
as soon as their cancellation token fires.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from typing import Any, AsyncIterator, Awaitable, Callable, TypeVar

from pydantic import ValidationError

from storefront.adapters.llm.base import AbstractLLMClient
from storefront.core.errors import UpstreamAppError
from storefront.schemas.insights import ReviewInsights
from storefront.schemas.product import Product
from storefront.services.stream_relay import CancellationToken

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUMMARY_EXAMPLES = """Example 1: Customers like the quality, space, fit and value of the sport equipment bag case. They mention it's heavy duty, has lots of space and pockets, and can fit all their gear. They also appreciate the portability and appearance. That said, some disagree on the zipper.
Example 2: Customers like the quality, ease of installation, and value of the transport rack. They mention that it holds on to everything really well, and is reliable. Some complain about the wind noise, saying it makes a whistling noise at high speeds. Opinions are mixed on fit, and performance.
Example 3: Customers like the quality and value of the insulated water bottle. They say it keeps drinks cold for hours and the lid seals well. Some customers have different opinions on size and durability."""

_WORD_COUNT_MARKER = re.compile(r"[\[\(]\d+ words[\]\)]")


def build_summary_prompt(product: Product) -> str:
    """Build the review-summary prompt for one product."""
    reviews = "\n\n".join(
        f"Review {i}:\n{review.review}" for i, review in enumerate(product.reviews, start=1)
    )
    return f"""Write a summary of the reviews for the {product.name} product. The product's average rating is {product.average_rating:g} out of 5 stars.

Your goal is to highlight the most common themes and sentiments expressed by customers.
If multiple themes are present, try to capture the most important ones.
If no patterns emerge but there is a shared sentiment, capture that instead.
Try to use natural language and keep the summary concise.
Use a maximum of 4 sentences and 30 words.
Don't include any word count or character count.
No need to reference which reviews you're summarizing.
Do not reference the star rating in the summary.

Start the summary with "Customers like…" or "Customers mention…"

Here are 3 examples of good summaries:
{SUMMARY_EXAMPLES}

Hit the following tone based on rating:
- 1-2 stars: negative
- 3 stars: neutral
- 4-5 stars: positive

The customer reviews to summarize are as follows:
{reviews}"""


def build_comparison_prompt(product_a: Product, product_b: Product) -> str:
    """Build the prompt comparing reviews of two products."""
    reviews_a = "\n".join(
        f"A{i} ({review.stars}★): {review.review}" for i, review in enumerate(product_a.reviews, start=1)
    )
    reviews_b = "\n".join(
        f"B{i} ({review.stars}★): {review.review}" for i, review in enumerate(product_b.reviews, start=1)
    )
    return f"""Compare customer reviews for two products and provide a concise, balanced analysis.

Products:
- {product_a.name} (average rating: {product_a.average_rating:.1f}/5)
- {product_b.name} (average rating: {product_b.average_rating:.1f}/5)

Guidelines:
- Highlight similarities and differences in themes, sentiment, and reliability.
- Note where opinions diverge and which use-cases each product fits best.
- Avoid mentioning star ratings directly in the narrative.
- Keep it to 4-6 sentences, clear and neutral.
- Begin with "Compared to each other…".

Reviews for {product_a.name}:
{reviews_a}

Reviews for {product_b.name}:
{reviews_b}"""


def build_insights_prompt(product: Product) -> str:
    """Build the prompt extracting pros, cons and themes."""
    reviews = "\n\n".join(
        f"Review {i} ({review.stars} stars):\n{review.review}"
        for i, review in enumerate(product.reviews, start=1)
    )
    return f"""Analyze the following customer reviews for the {product.name} product (average rating: {product.average_rating:g}/5).

Extract:
1. Pros: 3-5 positive aspects customers appreciate
2. Cons: 3-5 negative aspects or concerns mentioned
3. Themes: 3-5 key themes that emerge across reviews

Be specific and concise. Each item should be 3-7 words.
Return a JSON object with the keys "pros", "cons" and "themes", each a list of strings.

Reviews:
{reviews}"""


def build_recommendations_prompt(history: list[Product], candidates: list[Product]) -> str:
    """Build the prompt recommending products from a viewing history."""
    viewed = "\n".join(f"- {product.name}: {product.description}" for product in history)
    available = "\n".join(f"- {product.name}: {product.description}" for product in candidates)
    return f"""You are an assistant recommending products based on a user's viewing history.

User history (recently viewed):
{viewed}

Available candidates to consider (exclude history):
{available}

Instructions:
- Recommend 3 products from the candidates.
- Provide a brief rationale tailored to the history themes.
- Keep it concise (1-2 sentences per recommendation).
- Output as a simple list:
  1. Product Name - short rationale
  2. Product Name - short rationale
  3. Product Name - short rationale
"""


def clean_summary(text: str) -> str:
    """Strip wrapping quotes and "(N words)" markers the model sometimes adds."""
    text = text.strip()
    if text.startswith('"'):
        text = text[1:]
    if text.endswith('"'):
        text = text[:-1]
    return _WORD_COUNT_MARKER.sub("", text)


class ReviewAIService:
    """Generates review artifacts with an LLM client.

    Attributes:
        llm: LLM client adapter.
    """

    def __init__(self, llm: AbstractLLMClient) -> None:
        self.llm = llm

    async def _observed(
        self,
        function: str,
        slug: str,
        call: Callable[[], Awaitable[T]],
        failure_message: str,
    ) -> T:
        request_id = str(uuid.uuid4())
        start = time.perf_counter()
        logger.info(
            "ai_request_start",
            extra={"ai_request_id": request_id, "function": function, "slug": slug},
        )
        try:
            result = await call()
        except Exception as exc:
            logger.error(
                "ai_request_error",
                extra={
                    "ai_request_id": request_id,
                    "function": function,
                    "slug": slug,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            raise UpstreamAppError(code="upstream_failed", message=failure_message) from exc

        logger.info(
            "ai_request_success",
            extra={
                "ai_request_id": request_id,
                "function": function,
                "slug": slug,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return result

    async def summarize_reviews(self, product: Product) -> str:
        """Return a short review summary for ``product``.

        Raises:
            UpstreamAppError: If the model call fails.
        """

        async def _call() -> str:
            text = await self.llm.generate_text(
                build_summary_prompt(product),
                max_tokens=1000,
                temperature=0.75,
            )
            return clean_summary(text)

        return await self._observed(
            "summarize_reviews",
            product.slug,
            _call,
            "Unable to generate review summary. Please try again.",
        )

    async def review_insights(self, product: Product) -> ReviewInsights:
        """Extract pros, cons and themes for ``product``.

        Raises:
            UpstreamAppError: If the model call fails or returns an invalid shape.
        """

        async def _call() -> ReviewInsights:
            raw: dict[str, Any] = await self.llm.generate_json(
                build_insights_prompt(product),
                schema=ReviewInsights.model_json_schema(),
            )
            try:
                return ReviewInsights.model_validate(raw)
            except ValidationError as exc:
                raise RuntimeError(f"LLM returned invalid insights: {exc.error_count()} errors") from exc

        return await self._observed(
            "review_insights",
            product.slug,
            _call,
            "Unable to extract review insights. Please try again.",
        )

    async def _stream(self, prompt: str, token: CancellationToken, **kwargs: Any) -> AsyncIterator[str]:
        stream = self.llm.stream_text(prompt, **kwargs)
        try:
            async for chunk in stream:
                if token.cancelled:
                    break
                yield chunk
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    def stream_summary(self, product: Product, token: CancellationToken) -> AsyncIterator[str]:
        return self._stream(build_summary_prompt(product), token, max_tokens=1000, temperature=0.75)

    def stream_comparison(
        self,
        product_a: Product,
        product_b: Product,
        token: CancellationToken,
    ) -> AsyncIterator[str]:
        return self._stream(
            build_comparison_prompt(product_a, product_b),
            token,
            max_tokens=1200,
            temperature=0.7,
        )

    def stream_recommendations(
        self,
        history: list[Product],
        candidates: list[Product],
        token: CancellationToken,
    ) -> AsyncIterator[str]:
        return self._stream(
            build_recommendations_prompt(history, candidates),
            token,
            max_tokens=1000,
            temperature=0.7,
        )

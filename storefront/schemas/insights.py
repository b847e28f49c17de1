"""Pydantic schemas for cacheable AI artifacts."""

from pydantic import BaseModel, Field


class ReviewInsights(BaseModel):
    """Structured extraction of what customers say about a product."""

    pros: list[str] = Field(..., description="Positive aspects mentioned in reviews.")
    cons: list[str] = Field(..., description="Negative aspects or concerns.")
    themes: list[str] = Field(..., description="Key themes across all reviews.")


class ReviewInsightsResponse(ReviewInsights):
    slug: str
    cached: bool = Field(
        default=False,
        description="True if the insights were served from cache.",
    )


class ReviewSummaryResponse(BaseModel):
    slug: str
    summary: str
    cached: bool = Field(
        default=False,
        description="True if the summary was served from cache.",
    )

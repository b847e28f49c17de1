"""Pydantic schemas for catalog products and their reviews."""

from pydantic import BaseModel, Field


class Review(BaseModel):
    """A single customer review."""

    reviewer: str = Field(..., description="Display name of the reviewer.")
    stars: int = Field(..., ge=1, le=5, description="Star rating from 1 to 5.")
    review: str = Field(..., description="Free-text review body.")
    date: str = Field(..., description="Review date as supplied by the source.")


class Product(BaseModel):
    """Catalog product with the reviews the AI features summarize."""

    slug: str = Field(..., description="Stable product identifier used in URLs and cache tags.")
    name: str
    description: str
    reviews: list[Review] = Field(default_factory=list)
    image: str | None = None
    regular_price: float | None = None
    sale_price: float | None = None
    manufacturer: str | None = None

    @property
    def average_rating(self) -> float:
        if not self.reviews:
            return 0.0
        return sum(review.stars for review in self.reviews) / len(self.reviews)

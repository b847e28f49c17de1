"""Pydantic schemas for the admin endpoints."""

from pydantic import BaseModel


class LimiterStatResponse(BaseModel):
    key: str
    count: int


class InvalidationResponse(BaseModel):
    slug: str | None
    invalidated_tags: list[str]
    removed_entries: int


class LimiterResetResponse(BaseModel):
    reset: str

"""Application-level exception types.

Domain errors raised by services and adapters. Each maps to one HTTP status in
``exception_handlers``; cancellation of a stream is deliberately not part of
this taxonomy because a superseded stream simply stops.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    slug: str
    param: str
    limit: int
    remaining: int
    retry_after: float
    retry_after_seconds: int
    endpoint: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when request input is missing or malformed."""


class NotFoundAppError(AppError):
    """Raised when a requested product does not exist."""


class RateLimitedAppError(AppError):
    """Raised when a client exceeds its sliding-window budget."""

    @property
    def retry_after_seconds(self) -> int:
        return int((self.details or {}).get("retry_after_seconds", 0))


class UpstreamAppError(AppError):
    """Raised when the model provider fails; the message is always generic."""


class AuthenticationAppError(AppError):
    """Raised when admin authentication fails."""

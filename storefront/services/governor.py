"""Request governor shared by every AI-backed endpoint.

Composes the sliding-window limiter, the tagged result cache and the stream
relay into one per-request lifecycle:

1. derive a limiter key from client identity, endpoint and resource ids
2. admit or reject (``RateLimitedAppError`` with a retry hint)
3. serve cacheable artifacts through single-flight ``get_or_compute``
4. pipe streamed artifacts through the relay, bypassing the cache

Also exposes the admin operations: tag invalidation per product or for every
known product, limiter inspection and reset.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable

from storefront.adapters.rate_limit.base import AbstractRateLimiter, LimiterStat
from storefront.core.errors import RateLimitedAppError
from storefront.services.stream_relay import (
    CancellationToken,
    RelayOutcome,
    SessionRegistry,
    StreamRelay,
    iterate_relay,
)
from storefront.utils.tagged_cache import TaggedCache

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"
ARTIFACT_KINDS: tuple[str, ...] = ("summary", "insights")
STREAM_ERROR_MESSAGE = "\n\n[error] Unable to finish generating this response. Please try again."


@dataclass(frozen=True)
class RateLimitPolicy:
    """Budget for one endpoint."""

    endpoint: str
    max_requests: int
    window_seconds: float


@dataclass(frozen=True)
class InvalidationResult:
    tags: list[str]
    removed_entries: int


def client_identity(forwarded_for: str | None) -> str:
    """Return the first address of an ``X-Forwarded-For`` value.

    Examples:
        >>> client_identity("203.0.113.7, 10.0.0.1")
        '203.0.113.7'
        >>> client_identity(None)
        'unknown'
    """
    if not forwarded_for:
        return UNKNOWN_CLIENT
    first = forwarded_for.split(",")[0].strip()
    return first or UNKNOWN_CLIENT


def limiter_key(client: str, endpoint: str, *resource_ids: str) -> str:
    """Compose a limiter key such as ``"203.0.113.7:summary:mower"``."""
    return ":".join((client, endpoint, *resource_ids))


def artifact_tag(kind: str, resource: str) -> str:
    return f"{kind}:{resource}"


def _hash_key(key: str) -> str:
    """Hash a limiter key for logging without exposing client addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


class RequestGovernor:
    """Admission, caching and streaming for AI-backed requests.

    Attributes:
        limiter: Per-key sliding-window limiter.
        cache: Tagged result cache for non-streamed artifacts.
        relay: Relay used for streamed artifacts.
        sessions: Active stream sessions, last-request-wins per subject.
    """

    def __init__(
        self,
        limiter: AbstractRateLimiter,
        cache: TaggedCache,
        relay: StreamRelay | None = None,
        sessions: SessionRegistry | None = None,
        *,
        rate_limit_enabled: bool = True,
        stream_buffer_chunks: int = 1,
    ) -> None:
        self.limiter = limiter
        self.cache = cache
        self.relay = relay or StreamRelay()
        self.sessions = sessions or SessionRegistry()
        self.rate_limit_enabled = rate_limit_enabled
        self.stream_buffer_chunks = stream_buffer_chunks
        self._known_resources: set[str] = set()
        self._known_lock = threading.Lock()

    def admit(self, key: str, policy: RateLimitPolicy) -> None:
        """Consume one slot of ``policy`` for ``key``.

        Raises:
            RateLimitedAppError: When the window is full; carries the retry hint.
        """

        if not self.rate_limit_enabled:
            return

        result = self.limiter.admit(key, policy.max_requests, policy.window_seconds)
        log_extra = {
            "endpoint": policy.endpoint,
            "key_hash": _hash_key(key),
            "limit": result.limit,
            "remaining": result.remaining,
            "window_s": policy.window_seconds,
        }
        if result.allowed:
            logger.info("rate_limit.allowed", extra=log_extra)
            return

        retry_after_seconds = result.retry_after_seconds or 0
        logger.warning(
            "rate_limit.exceeded",
            extra={**log_extra, "retry_after_s": retry_after_seconds},
        )
        raise RateLimitedAppError(
            code="rate_limited",
            message="Rate limit exceeded. Try again later.",
            details={
                "endpoint": policy.endpoint,
                "limit": result.limit,
                "remaining": result.remaining,
                "retry_after": result.retry_after or 0.0,
                "retry_after_seconds": retry_after_seconds,
            },
        )

    async def get_or_compute(
        self,
        resource: str,
        kind: str,
        compute: Callable[[], Awaitable[Any]],
    ) -> tuple[Any, bool]:
        """Serve a cacheable artifact for ``resource``.

        Returns:
            Tuple of (value, cached) where cached is False only for the caller
            whose ``compute`` actually ran.
        """

        with self._known_lock:
            self._known_resources.add(resource)

        computed = False

        async def _tracked() -> Any:
            nonlocal computed
            computed = True
            return await compute()

        tag = artifact_tag(kind, resource)
        value = await self.cache.get_or_compute(tag, [tag], _tracked)
        return value, not computed

    async def stream(
        self,
        subject: str,
        source_factory: Callable[[CancellationToken], AsyncIterator[str]],
    ) -> AsyncIterator[str]:
        """Relay a session for ``subject``, yielding its chunks.

        The session is registered on the first iteration step, and any session
        still running for the same subject is cancelled at that point. An
        iterator closed or dropped before it starts never registers.
        """

        token = self.sessions.start(subject)
        subject_hash = _hash_key(subject)

        def _done(outcome: RelayOutcome | None) -> None:
            self.sessions.finish(subject, token)
            logger.info(
                "stream.session_closed",
                extra={
                    "subject_hash": subject_hash,
                    "status": outcome.status if outcome else "crashed",
                    "chunks": outcome.chunks_delivered if outcome else None,
                    "reason": outcome.reason if outcome else None,
                },
            )

        chunks = iterate_relay(
            self.relay,
            source_factory(token),
            token,
            buffer_size=self.stream_buffer_chunks,
            error_message=STREAM_ERROR_MESSAGE,
            on_done=_done,
        )
        try:
            async for chunk in chunks:
                yield chunk
        finally:
            # teardown of ``chunks`` never suspends
            await chunks.aclose()
            self.sessions.finish(subject, token)

    def known_resources(self, extra: Iterable[str] = ()) -> set[str]:
        """Resources seen by this governor, present in cache tags, or passed in."""

        resources = set(extra)
        with self._known_lock:
            resources |= self._known_resources
        for tag in self.cache.tags():
            kind, _, resource = tag.partition(":")
            if kind in ARTIFACT_KINDS and resource:
                resources.add(resource)
        return resources

    def invalidate(self, resource: str | None = None, *, extra_resources: Iterable[str] = ()) -> InvalidationResult:
        """Invalidate every artifact tag for one resource, or for all known ones."""

        resources = [resource] if resource else sorted(self.known_resources(extra_resources))
        tags = [artifact_tag(kind, res) for res in resources for kind in ARTIFACT_KINDS]
        removed = sum(self.cache.invalidate_tag(tag) for tag in tags)
        logger.info(
            "cache.bulk_invalidate",
            extra={"scope": resource or "all", "tags": len(tags), "removed": removed},
        )
        return InvalidationResult(tags=tags, removed_entries=removed)

    def limiter_stats(self) -> list[LimiterStat]:
        return self.limiter.stats()

    def reset_limiter(self, key: str | None = None) -> None:
        self.limiter.reset(key)
        logger.info("rate_limit.reset", extra={"scope": "key" if key else "all"})

"""In-memory TTL cache with tag invalidation and single-flight computation.

Used to avoid repeated model calls for cacheable review artifacts. Entries are
addressed by key and additionally indexed by tags (``"summary:<slug>"``), so
an admin action can drop every artifact derived from one product at once.

Concurrency:
- One ``threading.RLock`` guards the entry table and tag index; it is never
  held across an ``await``.
- An in-flight computation is a ``concurrent.futures.Future`` stored in the
  table. Concurrent callers for the same key await that future (via
  ``asyncio.wrap_future``) instead of computing again, which also works for
  callers running on other threads or event loops.
- Failed computations are dropped, so the next caller retries. Only
  successes persist, until TTL expiry, tag invalidation or ``clear()``.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable

from storefront.core.clock import Clock, MonotonicClock

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """One cache slot: either in flight or resolved."""

    key: str
    tags: frozenset[str]
    future: Future = field(default_factory=Future)
    created_at: float | None = None

    @property
    def resolved(self) -> bool:
        return self.created_at is not None and self.future.done()


class TaggedCache:
    """Thread-safe TTL cache keyed by identity and indexed by tags.

    Attributes:
        ttl_seconds: Age at which a stored value stops being served.
        max_entries: Maximum resolved entries kept (None for unlimited).
    """

    def __init__(
        self,
        ttl_seconds: float = 3600,
        max_entries: int | None = 1024,
        *,
        clock: Clock | None = None,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock or MonotonicClock()
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._tag_index: dict[str, set[str]] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"TaggedCache(ttl_seconds={self._ttl}, max_entries={self._max_entries}, "
            f"size={len(self._entries)}, tags={len(self._tag_index)})"
        )

    async def get_or_compute(
        self,
        key: str,
        tags: Iterable[str],
        compute: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Return the cached value for ``key`` or compute it exactly once.

        Args:
            key: Cache identity (e.g. ``"insights:widget"``).
            tags: Invalidation tags attached when the entry is created.
            compute: Zero-argument coroutine factory producing the value.

        Returns:
            The stored, joined, or freshly computed value.

        Raises:
            Exception: Whatever ``compute`` raised, delivered identically to
                every caller that joined the same computation.
        """

        while True:
            entry, owner = self._claim(key, tags)

            if owner:
                return await self._run(entry, compute)

            if entry.resolved:
                return entry.future.result()

            try:
                # shield: a waiter giving up must not cancel the shared computation
                return await asyncio.shield(asyncio.wrap_future(entry.future))
            except asyncio.CancelledError:
                if not entry.future.cancelled():
                    raise
                # the owner was cancelled before finishing; compete to take over
                logger.debug("cache.owner_abandoned", extra={"cache_key": key})

    def _claim(self, key: str, tags: Iterable[str]) -> tuple[CacheEntry, bool]:
        """Look up ``key``; install an in-flight placeholder on a miss."""

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.resolved and self._is_expired(entry):
                self._remove_locked(key)
                self._evictions += 1
                logger.debug("cache.miss", extra={"cache_key": key, "reason": "expired"})
                entry = None

            if entry is not None:
                if entry.resolved:
                    self._hits += 1
                    self._entries.move_to_end(key)
                    logger.debug("cache.hit", extra={"cache_key": key})
                else:
                    logger.debug("cache.join", extra={"cache_key": key})
                return entry, False

            self._misses += 1
            entry = CacheEntry(key=key, tags=frozenset(tags))
            self._entries[key] = entry
            for tag in entry.tags:
                self._tag_index.setdefault(tag, set()).add(key)
            logger.debug("cache.miss", extra={"cache_key": key, "reason": "not_found"})
            return entry, True

    async def _run(self, entry: CacheEntry, compute: Callable[[], Awaitable[Any]]) -> Any:
        try:
            value = await compute()
        except asyncio.CancelledError:
            self._discard(entry)
            entry.future.cancel()
            raise
        except Exception as exc:
            self._discard(entry)
            entry.future.set_exception(exc)
            logger.info(
                "cache.compute_failed",
                extra={"cache_key": entry.key, "error_type": type(exc).__name__},
            )
            raise

        with self._lock:
            entry.created_at = self._clock.now()
            entry.future.set_result(value)
            # clear() may have dropped the placeholder; waiters still get the value
            if self._entries.get(entry.key) is entry:
                self._entries.move_to_end(entry.key)
                self._evict_if_over_capacity_locked()
            logger.debug(
                "cache.set",
                extra={
                    "cache_key": entry.key,
                    "tags": sorted(entry.tags),
                    "size": len(self._entries),
                    "ttl_s": self._ttl,
                },
            )
        return value

    def get(self, key: str) -> Any | None:
        """Return a stored, unexpired value without computing anything."""

        with self._lock:
            entry = self._entries.get(key)
            if entry is None or not entry.resolved:
                return None
            if self._is_expired(entry):
                self._remove_locked(key)
                self._evictions += 1
                return None
            return entry.future.result()

    def invalidate_tag(self, tag: str) -> int:
        """Remove every stored entry carrying ``tag``.

        In-flight computations are left alone; they store normally when they
        finish and can be invalidated afterwards.

        Returns:
            Number of entries removed.
        """

        removed = 0
        with self._lock:
            for key in list(self._tag_index.get(tag, ())):
                entry = self._entries.get(key)
                if entry is not None and entry.resolved:
                    self._remove_locked(key)
                    removed += 1

        logger.info("cache.invalidate_tag", extra={"tag": tag, "removed": removed})
        return removed

    def clear(self) -> None:
        """Remove all entries, in-flight placeholders included, and reset counters."""

        with self._lock:
            self._entries.clear()
            self._tag_index.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def tags(self) -> set[str]:
        """Snapshot of every tag that currently indexes at least one entry."""

        with self._lock:
            return {tag for tag, keys in self._tag_index.items() if keys}

    def stats(self) -> dict[str, int | float | None]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            in_flight = sum(1 for entry in self._entries.values() if not entry.resolved)
            return {
                "ttl_seconds": self._ttl,
                "max_entries": self._max_entries,
                "entries": len(self._entries) - in_flight,
                "in_flight": in_flight,
                "tags": len(self._tag_index),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _discard(self, entry: CacheEntry) -> None:
        with self._lock:
            if self._entries.get(entry.key) is entry:
                self._remove_locked(entry.key)

    def _remove_locked(self, key: str) -> None:
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        for tag in entry.tags:
            keys = self._tag_index.get(tag)
            if keys is None:
                continue
            keys.discard(key)
            if not keys:
                del self._tag_index[tag]

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        resolved = [key for key, entry in self._entries.items() if entry.resolved]
        # OrderedDict order is least recently used first
        for key in resolved[: max(0, len(resolved) - self._max_entries)]:
            self._remove_locked(key)
            self._evictions += 1

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self._clock.now() - entry.created_at >= self._ttl

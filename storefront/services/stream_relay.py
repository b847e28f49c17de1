"""Relay of generator chunks to streaming clients.

A relay session pulls chunks from a one-shot async iterator and pushes them,
in order, to a sink. Both suspension points (waiting for the next chunk and
waiting for the sink) race against a cancellation token, so a disconnect or a
newer request for the same subject stops the session promptly: the pending
pull is cancelled, the source is closed so the generator can stop upstream
work, and nothing more is written.

``SessionRegistry`` implements last-request-wins per subject and
``iterate_relay`` adapts the push-style relay to the pull-style async
iterator that HTTP streaming responses consume.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import threading
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Literal

logger = logging.getLogger(__name__)

ChunkSink = Callable[[str], Awaitable[None]]
RelayStatus = Literal["completed", "cancelled", "failed"]


class CancellationToken:
    """One-shot cancellation signal shared by a relay and its generator.

    The token belongs to the event loop it was created on (or, when created
    outside a loop, the first loop that waits on it). ``cancel`` may be called
    from any thread; off-loop callers hand the wake-up to the owning loop.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._lock = threading.Lock()
        self._cancelled = False
        self._loop = _running_loop()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = "cancelled") -> None:
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            self.reason = reason
            loop = self._loop

        if loop is None or loop.is_closed() or _running_loop() is loop:
            self._event.set()
        else:
            loop.call_soon_threadsafe(self._event.set)

    async def wait(self) -> None:
        with self._lock:
            if self._loop is None:
                self._loop = asyncio.get_running_loop()
        await self._event.wait()


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


@dataclass(frozen=True)
class RelayOutcome:
    """How a relay session ended."""

    status: RelayStatus
    chunks_delivered: int
    reason: str | None = None


class SessionRegistry:
    """Tracks the active relay session per subject.

    Starting a session for a subject cancels the one already running for it,
    so a re-requested summary replaces the previous stream instead of
    competing with it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: dict[str, CancellationToken] = {}

    def start(self, subject: str) -> CancellationToken:
        token = CancellationToken()
        with self._lock:
            previous = self._active.get(subject)
            self._active[subject] = token
        if previous is not None and not previous.cancelled:
            previous.cancel("superseded")
            logger.info("stream.superseded", extra={"subject_hash": _short_hash(subject)})
        return token

    def finish(self, subject: str, token: CancellationToken) -> None:
        with self._lock:
            if self._active.get(subject) is token:
                del self._active[subject]

    def active_count(self) -> int:
        with self._lock:
            return len(self._active)


def _short_hash(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()[:16]


async def _until_cancelled(awaitable: Awaitable[Any], token: CancellationToken) -> asyncio.Future | None:
    """Await ``awaitable`` unless ``token`` fires first.

    Returns:
        The finished task, or None when cancellation won. The losing
        operation is cancelled and fully unwound before returning.
    """

    task = asyncio.ensure_future(awaitable)
    if token.cancelled:
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        return None

    waiter = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise
    finally:
        waiter.cancel()

    if task.done():
        return task

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    return None


async def _close_source(source: AsyncIterator[str]) -> None:
    aclose = getattr(source, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception:
        logger.warning("stream.source_close_failed", exc_info=True)


class StreamRelay:
    """Forwards chunks from a source to a sink under a cancellation token."""

    async def relay(
        self,
        source: AsyncIterator[str],
        sink: ChunkSink,
        token: CancellationToken,
    ) -> RelayOutcome:
        """Run one relay session to completion, cancellation or failure.

        Args:
            source: One-shot async iterator of text chunks.
            sink: Coroutine function accepting each chunk; awaiting it is the
                backpressure point.
            token: Cancellation signal for this session.

        Returns:
            RelayOutcome; partial output already written is never retracted.
        """

        delivered = 0
        iterator = source.__aiter__()
        try:
            while True:
                pulled = await _until_cancelled(iterator.__anext__(), token)
                if pulled is None:
                    return self._cancelled(delivered, token)

                try:
                    chunk = pulled.result()
                except StopAsyncIteration:
                    logger.debug("stream.completed", extra={"chunks": delivered})
                    return RelayOutcome(status="completed", chunks_delivered=delivered)
                except asyncio.CancelledError:
                    # generator stopped itself after seeing the token
                    return self._cancelled(delivered, token)
                except Exception as exc:
                    logger.warning(
                        "stream.source_failed",
                        extra={"chunks": delivered, "error_type": type(exc).__name__},
                    )
                    return RelayOutcome(
                        status="failed",
                        chunks_delivered=delivered,
                        reason=type(exc).__name__,
                    )

                if token.cancelled:
                    return self._cancelled(delivered, token)

                written = await _until_cancelled(sink(chunk), token)
                if written is None:
                    return self._cancelled(delivered, token)
                written.result()
                delivered += 1
        finally:
            await _close_source(iterator)

    @staticmethod
    def _cancelled(delivered: int, token: CancellationToken) -> RelayOutcome:
        logger.info(
            "stream.cancelled",
            extra={"chunks": delivered, "reason": token.reason},
        )
        return RelayOutcome(status="cancelled", chunks_delivered=delivered, reason=token.reason)


async def iterate_relay(
    relay: StreamRelay,
    source: AsyncIterator[str],
    token: CancellationToken,
    *,
    buffer_size: int = 1,
    error_message: str | None = None,
    on_done: Callable[[RelayOutcome | None], None] | None = None,
) -> AsyncIterator[str]:
    """Expose a relay session as an async iterator of chunks.

    The relay runs as its own task and writes into a bounded queue, so a slow
    consumer holds back the generator. When the consumer stops iterating
    (client disconnect), the token is cancelled and the relay winds down on
    its own; this generator never waits on it during teardown. Once the token
    fires, chunks still buffered in the queue are dropped rather than yielded.

    Args:
        relay: Relay implementation.
        source: Generator output for this session.
        token: Session cancellation token.
        buffer_size: Chunks allowed between relay and consumer.
        error_message: Trailing line emitted when the source fails.
        on_done: Called with the outcome (None if the relay crashed) once the
            relay task ends.
    """

    queue: asyncio.Queue[str] = asyncio.Queue(maxsize=buffer_size)
    runner = asyncio.create_task(relay.relay(source, queue.put, token))

    def _finished(task: asyncio.Task) -> None:
        outcome = None
        if not task.cancelled() and task.exception() is None:
            outcome = task.result()
        elif not task.cancelled():
            logger.error("stream.relay_crashed", exc_info=task.exception())
        if on_done is not None:
            on_done(outcome)

    runner.add_done_callback(_finished)

    getter: asyncio.Future | None = None
    try:
        while not token.cancelled:
            getter = asyncio.ensure_future(queue.get())
            await asyncio.wait({getter, runner}, return_when=asyncio.FIRST_COMPLETED)
            if getter.done():
                chunk = getter.result()
                getter = None
                # a cancelled session never writes again, even buffered chunks
                if token.cancelled:
                    break
                yield chunk
                continue

            getter.cancel()
            getter = None
            outcome = runner.result()
            if outcome.status == "cancelled":
                break
            while not queue.empty() and not token.cancelled:
                yield queue.get_nowait()
            if outcome.status == "failed" and error_message:
                yield error_message
            break
    finally:
        if getter is not None:
            getter.cancel()
        if not runner.done():
            token.cancel("client_disconnected")

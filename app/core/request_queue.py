"""Deferred outbound requests replayed once rate-limit capacity frees up."""

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

from app.config import settings
from app.core.exceptions import RateLimitException
from app.core.rate_limiter import RateLimiter, default_rate_limiter

logger = structlog.get_logger()


@dataclass
class QueuedRequest:
    api: str
    call: Callable[[], Awaitable[Any]]
    future: asyncio.Future
    label: str = ""


@dataclass
class QueueStats:
    queued: int = 0
    processed: int = 0
    failed: int = 0
    rejected: int = 0


class RequestQueue:
    """Bounded FIFO of calls waiting for rate-limit capacity.

    The queue lives in one API process; pending calls are lost on restart
    and their callers see the cancellation.
    """

    def __init__(self, limiter: RateLimiter, max_size: int = 100):
        self.limiter = limiter
        self.max_size = max_size
        self._items: deque[QueuedRequest] = deque()
        self._lock = asyncio.Lock()
        self.stats = QueueStats()

    def __len__(self) -> int:
        return len(self._items)

    def enqueue(self, api: str, call: Callable[[], Awaitable[Any]], label: str = "") -> asyncio.Future:
        """Queue ``call`` and return a future resolved with its result."""
        if len(self._items) >= self.max_size:
            self.stats.rejected += 1
            logger.warning("request_queue_full", api=api, size=len(self._items))
            raise RateLimitException("Request queue is full. Please try again later.", reason="queue_full")

        future = asyncio.get_running_loop().create_future()
        self._items.append(QueuedRequest(api=api, call=call, future=future, label=label))
        self.stats.queued += 1
        logger.info("request_queued", api=api, label=label, size=len(self._items))
        return future

    async def process(self) -> int:
        """Run queued calls in order while the limiter allows; returns how many ran."""
        if self._lock.locked():
            return 0

        processed = 0
        async with self._lock:
            while self._items:
                item = self._items[0]
                if item.future.cancelled():
                    self._items.popleft()
                    continue

                decision = self.limiter.acquire(item.api)
                if not decision.allowed:
                    logger.info("request_queue_waiting", reason=decision.reason, size=len(self._items))
                    break

                self._items.popleft()
                try:
                    result = await item.call()
                except Exception as e:
                    self.stats.failed += 1
                    if not item.future.done():
                        item.future.set_exception(e)
                else:
                    self.stats.processed += 1
                    if not item.future.done():
                        item.future.set_result(result)
                processed += 1

        if processed:
            logger.info("request_queue_processed", count=processed, remaining=len(self._items))
        return processed

    async def run_forever(self, interval: float) -> None:
        """Periodic processor started with the application."""
        while True:
            try:
                await self.process()
            except Exception as e:
                logger.error("request_queue_loop_error", error=str(e))
            await asyncio.sleep(interval)

    def clear(self) -> int:
        """Drop every pending call, cancelling its future."""
        dropped = 0
        while self._items:
            item = self._items.popleft()
            if not item.future.done():
                item.future.cancel()
            dropped += 1
        return dropped

    def status(self) -> dict[str, Any]:
        return {
            "length": len(self._items),
            "maxSize": self.max_size,
            "processing": self._lock.locked(),
            "queued": self.stats.queued,
            "processed": self.stats.processed,
            "failed": self.stats.failed,
            "rejected": self.stats.rejected,
        }


# Per-process queue instance
_queue: RequestQueue | None = None


def get_request_queue() -> RequestQueue:
    """Get or create this process's Yelp request queue."""
    global _queue

    if _queue is None:
        _queue = RequestQueue(default_rate_limiter(), max_size=settings.request_queue_max_size)

    return _queue


def reset_request_queue() -> None:
    global _queue

    if _queue is not None:
        _queue.clear()
    _queue = None

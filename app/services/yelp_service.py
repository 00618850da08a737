"""Yelp access path: cache, outage fallback, rate limiting and deferral."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import (
    BadRequestException,
    NotFoundException,
    RateLimitException,
    ServiceUnavailableException,
)
from app.core.rate_limiter import RateLimiter, default_limits
from app.core.request_queue import RequestQueue, get_request_queue
from app.core.store import CacheManager, get_store, make_cache_key
from app.core.yelp_client import YelpAPIError, YelpClient
from app.services.fallback_service import FallbackService

logger = structlog.get_logger()

YELP_API = "yelp"

# Upper bound on how long a deferred call may wait in the queue
DEFERRED_TIMEOUT_SECONDS = 120


@dataclass
class YelpResult:
    data: Any
    source: str
    cached: bool = False


class YelpService:
    """
    Every Yelp call goes through the same steps:

    1. the shared cache (skipped with ``fresh``),
    2. local data when Yelp is known to be down and not due for a recheck,
    3. the rate limiter, which either rejects with 429 or defers the call
       to the request queue,
    4. the Yelp client, whose result is cached.

    Yelp's own 429 surfaces as a rate-limit error; outages mark Yelp down
    and fall back to local data, or 503 when there is none.
    """

    def __init__(
        self,
        db: AsyncSession,
        client: YelpClient,
        cache: CacheManager,
        limiter: RateLimiter,
        fallback: FallbackService,
        queue: RequestQueue | None = None,
    ):
        self.db = db
        self.client = client
        self.cache = cache
        self.limiter = limiter
        self.fallback = fallback
        self.queue = queue

    async def _call(
        self,
        cache_key: str,
        ttl: int,
        call: Callable[[], Awaitable[Any]],
        fallback: Callable[[], Awaitable[Any]],
        fresh: bool = False,
        defer: bool = False,
    ) -> YelpResult:
        if not fresh:
            cached = self.cache.get_json(cache_key)
            if cached is not None:
                logger.debug("yelp_cache_hit", key=cache_key)
                return YelpResult(cached, source="cache", cached=True)

        if not self.client.configured:
            return await self._fallback(fallback, "Yelp is not configured")

        if not self.fallback.should_retry_yelp():
            return await self._fallback(fallback, "Yelp is temporarily unavailable")

        decision = self.limiter.acquire(YELP_API)
        try:
            if decision.allowed:
                data = await call()
            elif defer and self.queue is not None:
                future = self.queue.enqueue(YELP_API, call, label=cache_key)
                data = await asyncio.wait_for(future, timeout=DEFERRED_TIMEOUT_SECONDS)
            else:
                raise RateLimitException(
                    decision.message,
                    retry_after=decision.retry_after,
                    reason=decision.reason,
                )
        except YelpAPIError as e:
            if e.is_rate_limited:
                raise RateLimitException(
                    "Yelp rate limit reached. Please try again later.",
                    retry_after=60,
                    reason="upstream_limit",
                ) from e
            if e.is_outage:
                self.fallback.mark_down(e.message)
                return await self._fallback(fallback, "Yelp is temporarily unavailable")
            if e.status_code == 404:
                raise NotFoundException("Business not found on Yelp", error_code="YELP_NOT_FOUND") from e
            raise BadRequestException(e.message, error_code="YELP_REQUEST_REJECTED") from e
        except TimeoutError as e:
            raise ServiceUnavailableException("Yelp request timed out in the queue") from e

        self.fallback.mark_up()
        self.cache.set_json(cache_key, data, ttl=ttl)
        return YelpResult(data, source="yelp")

    async def _fallback(self, fallback: Callable[[], Awaitable[Any]], reason: str) -> YelpResult:
        data = await fallback()
        if data is None:
            raise ServiceUnavailableException(f"{reason} and no local data is available")
        logger.info("yelp_fallback_served", reason=reason)
        return YelpResult(data, source="fallback")

    async def search(
        self,
        params: dict[str, Any],
        city_id: UUID | None = None,
        fresh: bool = False,
        defer: bool = False,
    ) -> YelpResult:
        params = {key: value for key, value in params.items() if value is not None}
        params.setdefault("location", settings.yelp_default_location)
        return await self._call(
            make_cache_key("yelp:search", params),
            settings.search_cache_ttl,
            lambda: self.client.search(params),
            lambda: self.fallback.search(params, city_id),
            fresh=fresh,
            defer=defer,
        )

    async def get_details(self, yelp_id: str, fresh: bool = False, defer: bool = False) -> YelpResult:
        return await self._call(
            f"yelp:details:{yelp_id}",
            settings.details_cache_ttl,
            lambda: self.client.get_business(yelp_id),
            lambda: self.fallback.details(yelp_id),
            fresh=fresh,
            defer=defer,
        )

    async def get_reviews(self, yelp_id: str, fresh: bool = False) -> YelpResult:
        async def no_local_reviews() -> None:
            return None

        return await self._call(
            f"yelp:reviews:{yelp_id}",
            settings.reviews_cache_ttl,
            lambda: self.client.get_reviews(yelp_id),
            no_local_reviews,
            fresh=fresh,
        )

    def clear_cache(self) -> int:
        return self.cache.delete_pattern("yelp:*")

    def status(self) -> dict[str, Any]:
        return {
            "configured": self.client.configured,
            "health": self.fallback.status(),
            "rateLimit": self.limiter.status(YELP_API),
            "queue": self.queue.status() if self.queue is not None else None,
        }


def build_yelp_service(db: AsyncSession, client: YelpClient | None = None) -> YelpService:
    """Wire a YelpService to the shared store and this process's request queue."""
    store = get_store()
    return YelpService(
        db,
        client or YelpClient(),
        CacheManager(store),
        RateLimiter(store, default_limits()),
        FallbackService(db, store),
        get_request_queue(),
    )

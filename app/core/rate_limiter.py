"""Windowed rate limiting for outbound third-party APIs."""

import time
from collections.abc import Callable
from dataclasses import asdict, dataclass

import structlog

from app.config import settings
from app.core.store import KeyValueStore, get_store

logger = structlog.get_logger()


@dataclass(frozen=True)
class Window:
    """A fixed time bucket and the reason reported when it is exhausted."""

    name: str
    seconds: int
    reason: str


MINUTE = Window("minute", 60, "minute_limit")
HOUR = Window("hour", 3600, "hourly_limit")
DAY = Window("day", 86400, "daily_limit")
WINDOWS = (MINUTE, HOUR, DAY)

LIMIT_MESSAGES = {
    "minute_limit": "Too many requests per minute. Please wait a moment and try again.",
    "hourly_limit": "Hourly request limit reached. Please try again in an hour.",
    "daily_limit": "Daily request limit reached. Please try again tomorrow.",
}


@dataclass(frozen=True)
class RateLimits:
    minute: int
    hour: int
    day: int

    def for_window(self, window: Window) -> int:
        return getattr(self, window.name)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    reason: str | None = None
    retry_after: int | None = None
    current_count: int | None = None
    limit: int | None = None

    @property
    def message(self) -> str:
        return LIMIT_MESSAGES.get(self.reason or "", "Rate limit exceeded. Please try again later.")

    def to_dict(self) -> dict:
        return asdict(self)


class RateLimiter:
    """Independent minute, hour and day counters per API name.

    A call is allowed only while every window is under its limit. Counters
    live in the shared store under ``rate_limit:{api}:{window}:{index}`` and
    expire with their window.
    """

    def __init__(
        self,
        store: KeyValueStore,
        limits: dict[str, RateLimits],
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.limits = limits
        self.clock = clock

    def _key(self, api: str, window: Window, now: float) -> str:
        return f"rate_limit:{api}:{window.name}:{int(now // window.seconds)}"

    def _limits_for(self, api: str) -> RateLimits:
        # "verification:+15125550100" falls back to the "verification" limits
        limits = self.limits.get(api) or self.limits.get(api.split(":", 1)[0])
        if limits is None:
            raise ValueError(f"Unknown API for rate limiting: {api}")
        return limits

    def check(self, api: str) -> RateLimitDecision:
        """Check whether a call to ``api`` fits in every window."""
        limits = self._limits_for(api)
        now = self.clock()

        for window in WINDOWS:
            limit = limits.for_window(window)
            count = int(self.store.get(self._key(api, window, now)) or 0)
            if count >= limit:
                retry_after = max(1, int(window.seconds - (now % window.seconds)))
                logger.info("rate_limit_exceeded", api=api, reason=window.reason, count=count)
                return RateLimitDecision(
                    allowed=False,
                    reason=window.reason,
                    retry_after=retry_after,
                    current_count=count,
                    limit=limit,
                )

        return RateLimitDecision(allowed=True)

    def record(self, api: str) -> None:
        """Count one call against every window."""
        self._limits_for(api)
        now = self.clock()
        for window in WINDOWS:
            self.store.incr(self._key(api, window, now), ttl=window.seconds)

    def acquire(self, api: str) -> RateLimitDecision:
        """Check and, when allowed, record a call in one step."""
        decision = self.check(api)
        if decision.allowed:
            self.record(api)
        return decision

    def status(self, api: str) -> dict[str, dict[str, int]]:
        """Current usage per window."""
        limits = self._limits_for(api)
        now = self.clock()
        result = {}
        for window in WINDOWS:
            current = int(self.store.get(self._key(api, window, now)) or 0)
            limit = limits.for_window(window)
            result[window.name] = {
                "current": current,
                "limit": limit,
                "remaining": max(0, limit - current),
            }
        return result

    def reset(self, api: str) -> int:
        """Drop every counter for ``api``."""
        keys = self.store.keys(f"rate_limit:{api}:*")
        return self.store.delete(*keys) if keys else 0


def default_limits() -> dict[str, RateLimits]:
    """Configured limits for every rate-limited outbound API."""
    return {
        "yelp": RateLimits(
            minute=settings.yelp_limit_per_minute,
            hour=settings.yelp_limit_per_hour,
            day=settings.yelp_limit_per_day,
        ),
        # Keyed per phone number
        "verification": RateLimits(
            minute=settings.verification_sends_per_minute,
            hour=settings.verification_sends_per_minute * 10,
            day=settings.verification_sends_per_minute * 20,
        ),
    }


def default_rate_limiter() -> RateLimiter:
    return RateLimiter(get_store(), default_limits())

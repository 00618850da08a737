"""Shared key-value store and JSON cache helpers.

Rate-limit counters, response caches, Yelp health state and phone
verification codes all live behind :class:`KeyValueStore`, so several API
instances pointed at the same Redis share one view of that state.
``MemoryStore`` serves single-process development and tests.
"""

import fnmatch
import json
import time
from collections.abc import Callable
from typing import Any, Protocol, cast

import redis
import structlog

from app.config import settings

logger = structlog.get_logger()


class KeyValueStore(Protocol):
    """Minimal store contract used by the rest of the application."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str, ttl: int | None = None) -> None: ...

    def incr(self, key: str, ttl: int | None = None) -> int: ...

    def delete(self, *keys: str) -> int: ...

    def exists(self, key: str) -> bool: ...

    def keys(self, pattern: str) -> list[str]: ...

    def ping(self) -> bool: ...


class RedisStore:
    """Store backed by a Redis server."""

    def __init__(self, client: redis.Redis):
        self.redis = client

    def get(self, key: str) -> str | None:
        return cast(str | None, self.redis.get(key))

    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        if ttl:
            self.redis.setex(key, ttl, value)
        else:
            self.redis.set(key, value)

    def incr(self, key: str, ttl: int | None = None) -> int:
        count = cast(int, self.redis.incr(key))
        if count == 1 and ttl:
            # First hit opens the window
            self.redis.expire(key, ttl)
        return count

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return cast(int, self.redis.delete(*keys))

    def exists(self, key: str) -> bool:
        return bool(self.redis.exists(key))

    def keys(self, pattern: str) -> list[str]:
        return [cast(str, key) for key in self.redis.scan_iter(match=pattern)]

    def ping(self) -> bool:
        return bool(self.redis.ping())

    def close(self) -> None:
        self.redis.close()


class MemoryStore:
    """Process-local store with TTL support.

    Only suitable for a single API instance; the clock is injectable so
    window rollover and expiry can be exercised in tests.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}

    def _live(self, key: str) -> tuple[str, float | None] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    def get(self, key: str) -> str | None:
        entry = self._live(key)
        return entry[0] if entry else None

    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        self._data[key] = (value, expires_at)

    def incr(self, key: str, ttl: int | None = None) -> int:
        entry = self._live(key)
        if entry is None:
            count = 1
            expires_at = self._clock() + ttl if ttl else None
        else:
            count = int(entry[0]) + 1
            expires_at = entry[1]
        self._data[key] = (str(count), expires_at)
        return count

    def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._live(key) is not None:
                del self._data[key]
                removed += 1
        return removed

    def exists(self, key: str) -> bool:
        return self._live(key) is not None

    def keys(self, pattern: str) -> list[str]:
        return [key for key in list(self._data) if self._live(key) and fnmatch.fnmatchcase(key, pattern)]

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        self._data.clear()


# Global store instance
_store: KeyValueStore | None = None


def create_store() -> KeyValueStore:
    """Create the store selected by ``CACHE_BACKEND``."""
    if settings.cache_backend.lower() == "memory":
        return MemoryStore()

    client = redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        username=settings.redis_username,
        password=settings.redis_password,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_keepalive=True,
        health_check_interval=30,
    )
    return RedisStore(client)


def get_store() -> KeyValueStore:
    """Get or create the shared store instance."""
    global _store

    if _store is None:
        _store = create_store()

    return _store


def set_store(store: KeyValueStore | None) -> None:
    """Replace the shared store (used by tests and scripts)."""
    global _store
    _store = store


async def check_store_connection() -> bool:
    """Check if the store is reachable."""
    try:
        return get_store().ping()
    except Exception:
        return False


def close_store() -> None:
    """Close the store connection."""
    global _store

    if _store is not None:
        close = getattr(_store, "close", None)
        if close is not None:
            close()
        _store = None


class CacheManager:
    """JSON cache on top of the shared store.

    Cache failures are logged and treated as misses; a broken cache never
    fails a request.
    """

    def __init__(self, store: KeyValueStore):
        """Initialize cache manager with a store."""
        self.store = store

    def get_json(self, key: str) -> Any | None:
        """Get JSON value from cache and deserialize."""
        try:
            value = self.store.get(key)
            if value:
                return json.loads(value)
            return None
        except Exception as e:
            logger.warning("cache_get_failed", key=key, error=str(e))
            return None

    def set_json(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Serialize and set JSON value in cache."""
        try:
            self.store.set(key, json.dumps(value, default=str), ttl)
            return True
        except Exception as e:
            logger.warning("cache_set_failed", key=key, error=str(e))
            return False

    def delete(self, key: str) -> bool:
        """Delete key from cache."""
        try:
            self.store.delete(key)
            return True
        except Exception as e:
            logger.warning("cache_delete_failed", key=key, error=str(e))
            return False

    def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching a glob pattern (e.g. ``yelp:search:*``)."""
        try:
            keys = self.store.keys(pattern)
            if keys:
                return self.store.delete(*keys)
            return 0
        except Exception as e:
            logger.warning("cache_delete_pattern_failed", pattern=pattern, error=str(e))
            return 0


def make_cache_key(namespace: str, params: dict[str, Any]) -> str:
    """Build a cache key from sorted, non-empty request parameters."""
    parts = [f"{key}={params[key]}" for key in sorted(params) if params[key] is not None]
    return f"{namespace}:{'&'.join(parts)}"

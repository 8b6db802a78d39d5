"""TTL key-value caches used for tenant lookups.

Two interchangeable backends implement the TTLCache protocol:

- MemoryTTLCache: per-process dict with per-entry TTL. Reads never take the
  lock; inserts and evictions do, so invalidation is visible to the next read.
- RedisTTLCache: shared across worker processes, keys prefixed with
  tenant:lookup: and expired by Redis itself (SET ... EX).

Both store "value is None" as a real entry, which lets callers cache a
negative lookup result distinctly from a miss.

Read and write failures of the Redis backend degrade to misses; failed
invalidations raise CacheUnavailableError.
"""

from __future__ import annotations

import json
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class CacheUnavailableError(Exception):
    """The cache backend could not apply an invalidation."""


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value with the time it was fetched and its TTL (seconds)."""

    value: T | None
    fetched_at: float
    ttl: float

    def is_stale(self, now: float) -> bool:
        return now - self.fetched_at > self.ttl


class TTLCache(Protocol[T]):
    """Async key-value store with per-entry TTL."""

    async def get(self, key: str) -> CacheEntry[T] | None: ...

    async def set(self, key: str, value: T | None, ttl: float | None = None) -> None: ...

    async def delete(self, key: str) -> bool: ...

    async def clear(self) -> None: ...


# ── In-Memory Backend ──────────────────────────────────────────────────────


class MemoryTTLCache(Generic[T]):
    """Process-local TTL cache.

    Racing inserts for the same key are last-write-wins.

    Args:
        default_ttl: TTL in seconds used when set() is called without one.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(self, default_ttl: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> CacheEntry[T] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_stale(self._clock()):
            with self._lock:
                # Only evict if nobody replaced it in the meantime
                if self._entries.get(key) is entry:
                    del self._entries[key]
            return None
        return entry

    async def set(self, key: str, value: T | None, ttl: float | None = None) -> None:
        entry = CacheEntry(
            value=value,
            fetched_at=self._clock(),
            ttl=self._default_ttl if ttl is None else ttl,
        )
        with self._lock:
            self._entries[key] = entry

    async def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    async def clear(self) -> None:
        with self._lock:
            self._entries.clear()


# ── Redis Backend ──────────────────────────────────────────────────────────


class RedisTTLCache(Generic[T]):
    """Redis-backed TTL cache shared by all worker processes.

    Values are serialized through the encode/decode callables into a JSON
    envelope {"fetched_at": ..., "value": ...}. Read and write errors are
    logged and treated as misses so a cache outage degrades to direct store
    lookups; delete() and clear() raise CacheUnavailableError.
    """

    def __init__(
        self,
        redis_client: aioredis.Redis,
        default_ttl: float,
        encode: Callable[[T], Any],
        decode: Callable[[Any], T],
        prefix: str = "tenant:lookup:",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._redis = redis_client
        self._default_ttl = default_ttl
        self._encode = encode
        self._decode = decode
        self._prefix = prefix
        self._clock = clock

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> CacheEntry[T] | None:
        try:
            raw = await self._redis.get(self._key(key))
        except Exception:
            logger.warning("cache.redis_get_failed", key=key, exc_info=True)
            return None
        if raw is None:
            return None

        try:
            envelope = json.loads(raw)
            value = envelope.get("value")
            return CacheEntry(
                value=self._decode(value) if value is not None else None,
                fetched_at=float(envelope["fetched_at"]),
                ttl=float(envelope["ttl"]),
            )
        except (ValueError, KeyError, TypeError, AttributeError):
            # Corrupt or outdated envelope; the next set() overwrites it
            logger.warning("cache.redis_decode_failed", key=key, exc_info=True)
            return None

    async def set(self, key: str, value: T | None, ttl: float | None = None) -> None:
        ttl = self._default_ttl if ttl is None else ttl
        envelope = {
            "fetched_at": self._clock(),
            "ttl": ttl,
            "value": self._encode(value) if value is not None else None,
        }
        try:
            await self._redis.set(self._key(key), json.dumps(envelope), ex=max(1, math.ceil(ttl)))
        except Exception:
            logger.warning("cache.redis_set_failed", key=key, exc_info=True)

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self._redis.delete(self._key(key)))
        except RedisError as exc:
            logger.error("cache.redis_delete_failed", key=key, exc_info=True)
            raise CacheUnavailableError(f"could not delete {key!r}") from exc

    async def clear(self) -> None:
        try:
            keys = [k async for k in self._redis.scan_iter(match=f"{self._prefix}*")]
            if keys:
                await self._redis.delete(*keys)
        except RedisError as exc:
            logger.error("cache.redis_clear_failed", prefix=self._prefix, exc_info=True)
            raise CacheUnavailableError("could not clear tenant cache") from exc

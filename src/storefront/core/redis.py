"""Process-wide Redis client for the shared tenant cache.

Only touched when TENANT_CACHE_BACKEND=redis: every worker then reads and
invalidates the same tenant lookups, so an admin cache clear reaches all
of them at once.
"""

from __future__ import annotations

import redis.asyncio as aioredis

from src.storefront.config import get_settings

_client: aioredis.Redis | None = None


def get_redis_pool() -> aioredis.Redis:
    """Lazily created client (string responses) on REDIS_URL."""
    global _client
    if _client is None:
        _client = aioredis.from_url(get_settings().REDIS_URL, decode_responses=True)
    return _client


async def ping_redis() -> bool:
    return bool(await get_redis_pool().ping())


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None

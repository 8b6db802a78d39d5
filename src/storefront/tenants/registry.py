"""Tenant registry: hostname -> TenantConfig behind a TTL cache.

Resolution order for a hostname in multi-tenant mode:
1. Cache slot for the canonical hostname (hot path, no store access).
2. Store lookup by every normalized hostname variant.
3. Subdomain fallback: first DNS label looked up as a tenant id.

Both hits and misses are cached for the configured TTL. Store errors and
timeouts are logged and reported as "not found" without being cached, so
callers fall back to the environment default tenant (fail open).

clear_tenant_cache() bumps an invalidation generation (per slot and
global). A lookup that was in flight across a clear still returns its
result but does not write it back to the cache.
"""

from __future__ import annotations

import asyncio

import structlog

from src.storefront.config import TenantMode
from src.storefront.core.cache import CacheUnavailableError, TTLCache
from src.storefront.core.hostnames import cache_key_for, normalize_hostname, subdomain_of
from src.storefront.core.monitoring import tenant_cache_lookups_total, tenant_resolutions_total
from src.storefront.tenants.schemas import TenantConfig
from src.storefront.tenants.store import TenantStore

logger = structlog.get_logger(__name__)


def lookup_keys(hostname: str) -> list[str]:
    """Store keys to probe: the raw variants, then the canonical variants."""
    keys = normalize_hostname(hostname) + normalize_hostname(cache_key_for(hostname))
    return list(dict.fromkeys(keys))


class TenantRegistry:
    """Resolves tenants by hostname.

    Args:
        store: Tenant datastore boundary.
        cache: TTL cache keyed by canonical hostname.
        default_tenant: Environment-level tenant for single-tenant mode and fallback.
        mode: single (always default_tenant) or multi (hostname lookup).
        ttl_seconds: TTL applied to cached lookups.
        lookup_timeout_seconds: Upper bound for each store call.
    """

    def __init__(
        self,
        store: TenantStore,
        cache: TTLCache[TenantConfig],
        default_tenant: TenantConfig,
        mode: TenantMode = TenantMode.multi,
        ttl_seconds: float = 300,
        lookup_timeout_seconds: float = 2.0,
    ) -> None:
        self._store = store
        self._cache = cache
        self._default_tenant = default_tenant
        self._mode = mode
        self._ttl = ttl_seconds
        self._timeout = lookup_timeout_seconds
        self._generation = 0
        self._slot_generations: dict[str, int] = {}

    def _generation_of(self, slot: str) -> tuple[int, int]:
        return self._generation, self._slot_generations.get(slot, 0)

    @property
    def default_tenant(self) -> TenantConfig:
        return self._default_tenant

    @property
    def mode(self) -> TenantMode:
        return self._mode

    async def resolve_tenant(self, hostname: str) -> TenantConfig | None:
        """Return the tenant owning hostname, or None if there is none."""
        if self._mode == TenantMode.single:
            return self._default_tenant

        slot = cache_key_for(hostname)
        entry = await self._cache.get(slot)
        if entry is not None:
            tenant_cache_lookups_total.labels(result="hit").inc()
            return entry.value
        tenant_cache_lookups_total.labels(result="miss").inc()

        generation = self._generation_of(slot)
        try:
            tenant = await asyncio.wait_for(self._lookup(hostname), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("tenant_registry.lookup_timeout", hostname=hostname, timeout=self._timeout)
            tenant_resolutions_total.labels(outcome="unavailable").inc()
            return None
        except Exception:
            logger.warning("tenant_registry.lookup_failed", hostname=hostname, exc_info=True)
            tenant_resolutions_total.labels(outcome="unavailable").inc()
            return None

        if self._generation_of(slot) == generation:
            await self._cache.set(slot, tenant, ttl=self._ttl)
        else:
            logger.info("tenant_registry.stale_lookup_not_cached", hostname=hostname, slot=slot)
        tenant_resolutions_total.labels(outcome="found" if tenant else "not_found").inc()
        return tenant

    async def _lookup(self, hostname: str) -> TenantConfig | None:
        matches = await self._store.find_active_by_hostnames(lookup_keys(hostname))
        if len(matches) > 1:
            logger.warning(
                "tenant_registry.ambiguous_hostname",
                hostname=hostname,
                tenant_ids=[t.id for t in matches],
                chosen=matches[0].id,
            )
        if matches:
            return matches[0]

        subdomain = subdomain_of(hostname)
        if subdomain:
            tenant = await self._store.get_active_by_id(subdomain)
            if tenant:
                logger.info("tenant_registry.subdomain_match", hostname=hostname, tenant_id=tenant.id)
                return tenant

        logger.info("tenant_registry.not_found", hostname=hostname)
        return None

    async def resolve_or_default(self, hostname: str) -> TenantConfig:
        """Resolve hostname, falling back to the default tenant on absence or error."""
        try:
            tenant = await self.resolve_tenant(hostname)
        except Exception:
            logger.warning("tenant_registry.resolve_failed", hostname=hostname, exc_info=True)
            tenant = None

        if tenant is None:
            logger.info(
                "tenant_registry.default_fallback",
                hostname=hostname,
                tenant_id=self._default_tenant.id,
            )
            return self._default_tenant
        return tenant

    async def clear_tenant_cache(self, hostname: str | None = None) -> bool:
        """Evict one hostname (all of its raw variants) or the whole cache.

        Returns:
            False if the cache backend could not apply the eviction. In-flight
            lookups are kept from re-caching either way.
        """
        if hostname:
            slot = cache_key_for(hostname)
            self._slot_generations[slot] = self._slot_generations.get(slot, 0) + 1
            try:
                await self._cache.delete(slot)
            except CacheUnavailableError:
                logger.error("tenant_registry.cache_clear_failed", hostname=hostname, slot=slot)
                return False
            logger.info("tenant_registry.cache_cleared", hostname=hostname, slot=slot)
            return True

        self._generation += 1
        self._slot_generations.clear()
        try:
            await self._cache.clear()
        except CacheUnavailableError:
            logger.error("tenant_registry.cache_clear_all_failed")
            return False
        logger.info("tenant_registry.cache_cleared_all")
        return True

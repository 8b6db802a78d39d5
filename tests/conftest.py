"""Shared test fixtures and in-memory test doubles.

Provides:
- InMemoryTenantStore: TenantStore double with call counting and failure modes
- InMemoryPageVersionStore: PageVersionRepository double
- make_tenant / make_version: factories for TenantConfig and PageVersion
- FakeClock: manually advanced monotonic clock for TTL tests
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import pytest

from src.storefront.pages.schemas import PageVersion, VersionStatus, VersionTags
from src.storefront.tenants.schemas import (
    TenantApiConfig,
    TenantConfig,
    TenantDatabaseConfig,
    TenantDomain,
)

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


# ── Test Doubles ─────────────────────────────────────────────────────────────


class InMemoryTenantStore:
    """In-memory TenantStore for testing without database.

    Set fail_with to an exception to make every lookup raise it, or delay
    to make lookups sleep (for timeout tests).
    """

    def __init__(self, tenants: list[TenantConfig] | None = None) -> None:
        self.tenants: list[TenantConfig] = list(tenants or [])
        self.hostname_queries: list[list[str]] = []
        self.id_queries: list[str] = []
        self.fail_with: Exception | None = None
        self.delay: float = 0.0

    async def _maybe_fail(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with

    async def find_active_by_hostnames(self, hostnames: list[str], limit: int = 2) -> list[TenantConfig]:
        self.hostname_queries.append(list(hostnames))
        await self._maybe_fail()
        keys = set(hostnames)
        matches = [
            t
            for t in self.tenants
            if t.is_active
            and any(d.hostname in keys and d.is_active is not False for d in t.domains)
        ]
        return matches[:limit]

    async def get_active_by_id(self, tenant_id: str) -> TenantConfig | None:
        self.id_queries.append(tenant_id)
        await self._maybe_fail()
        for tenant in self.tenants:
            if tenant.id == tenant_id and tenant.is_active:
                return tenant
        return None

    @property
    def query_count(self) -> int:
        return len(self.hostname_queries)


class InMemoryPageVersionStore:
    """In-memory PageVersionRepository for testing without database.

    Set fail_with to an exception to make every call raise it, or delay to
    make calls sleep (for timeout tests).
    """

    def __init__(self, versions: list[PageVersion] | None = None) -> None:
        self._versions: dict[tuple[str, int], PageVersion] = {}
        self.fail_with: Exception | None = None
        self.delay: float = 0.0
        self.updates: list[tuple[str, int, dict[str, Any]]] = []
        for version in versions or []:
            self.add(version)

    def add(self, version: PageVersion) -> None:
        self._versions[(version.slug, version.version)] = version

    async def _maybe_fail(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with

    async def list_versions(self, slug: str) -> list[PageVersion]:
        await self._maybe_fail()
        versions = [v for (s, _), v in self._versions.items() if s == slug]
        return sorted(versions, key=lambda v: v.version, reverse=True)

    async def get_version(self, slug: str, version: int) -> PageVersion | None:
        await self._maybe_fail()
        return self._versions.get((slug, version))

    async def update_version(
        self, slug: str, version: int, values: dict[str, Any]
    ) -> PageVersion | None:
        await self._maybe_fail()
        current = self._versions.get((slug, version))
        if current is None:
            return None
        self.updates.append((slug, version, dict(values)))
        updated = current.model_copy(update=values)
        self._versions[(slug, version)] = updated
        return updated


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ── Factories ────────────────────────────────────────────────────────────────


def build_tenant(
    tenant_id: str = "acme",
    domains: list[str] | None = None,
    **overrides: Any,
) -> TenantConfig:
    data: dict[str, Any] = {
        "id": tenant_id,
        "name": tenant_id.title(),
        "project_code": f"{tenant_id}-shop",
        "domains": [TenantDomain(hostname=h, is_active=True) for h in domains or []],
        "api": TenantApiConfig(
            pim_api_url=f"https://pim.{tenant_id}.test",
            b2b_api_url=f"https://b2b.{tenant_id}.test/api/v1",
            api_key_id="key-id",
            api_secret="secret",
        ),
        "database": TenantDatabaseConfig(url="", name=f"tenant_{tenant_id}"),
    }
    data.update(overrides)
    return TenantConfig(**data)


def build_version(
    version: int,
    slug: str = "home",
    status: VersionStatus = VersionStatus.PUBLISHED,
    tags: dict[str, Any] | None = None,
    **overrides: Any,
) -> PageVersion:
    data: dict[str, Any] = {
        "slug": slug,
        "version": version,
        "status": status,
        "tags": VersionTags.model_validate(tags) if tags is not None else None,
        "created_at": NOW,
        "blocks": [{"type": "hero", "id": f"block-{version}"}],
    }
    data.update(overrides)
    return PageVersion(**data)


@pytest.fixture
def make_tenant() -> Callable[..., TenantConfig]:
    return build_tenant


@pytest.fixture
def make_version() -> Callable[..., PageVersion]:
    return build_version


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tenant_store() -> InMemoryTenantStore:
    return InMemoryTenantStore()


@pytest.fixture
def page_store() -> InMemoryPageVersionStore:
    return InMemoryPageVersionStore()

"""Page version resolution tests against InMemoryPageVersionStore."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from src.storefront.pages.resolver import PageVersionResolver, is_within_window
from src.storefront.pages.schemas import RequestContext, VersionStatus

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def _resolver(store) -> PageVersionResolver:
    return PageVersionResolver(store, clock=lambda: NOW)


def _context(**data) -> RequestContext:
    return RequestContext(**data)


# ── Selection ────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_campaign_version_and_default_fallback(page_store, make_version):
    """home v3 is the untagged default; v5 targets the summer campaign."""
    page_store.add(make_version(3, tags={}, is_default=True))
    page_store.add(make_version(5, tags={"campaign": "summer"}))
    resolver = _resolver(page_store)

    summer = await resolver.resolve_page_version("home", _context(campaign="summer"))
    winter = await resolver.resolve_page_version("home", _context(campaign="winter"))
    plain = await resolver.resolve_page_version("home")

    assert summer.version.version == 5
    assert summer.matched_by == "campaign"
    assert summer.specificity == 1
    assert winter.version.version == 3
    assert winter.matched_by == "default"
    assert plain.version.version == 3


@pytest.mark.asyncio
async def test_specificity_beats_priority(page_store, make_version):
    page_store.add(make_version(1, tags={"campaign": "summer"}, priority=100))
    page_store.add(make_version(2, tags={"campaign": "summer", "attributes": {"region": "eu"}}))
    resolver = _resolver(page_store)

    result = await resolver.resolve_page_version(
        "home", _context(campaign="summer", attributes={"region": "eu"})
    )

    assert result.version.version == 2
    assert result.matched_by == "campaign+region"
    assert result.specificity == 2


@pytest.mark.asyncio
async def test_equal_specificity_uses_priority(page_store, make_version):
    page_store.add(make_version(1, tags={"campaign": "summer"}, priority=5))
    page_store.add(make_version(2, tags={"campaign": "summer"}, priority=1))
    resolver = _resolver(page_store)

    result = await resolver.resolve_page_version("home", _context(campaign="summer"))

    assert result.version.version == 1


@pytest.mark.asyncio
async def test_equal_priority_prefers_default(page_store, make_version):
    page_store.add(make_version(1, tags={"segment": "vip"}, is_default=True))
    page_store.add(make_version(2, tags={"segment": "vip"}))
    resolver = _resolver(page_store)

    result = await resolver.resolve_page_version("home", _context(segment="vip"))

    assert result.version.version == 1


@pytest.mark.asyncio
async def test_ties_break_on_recency_then_version(page_store, make_version):
    page_store.add(make_version(1, published_at=NOW - timedelta(days=1)))
    page_store.add(make_version(2, published_at=NOW - timedelta(days=3)))
    resolver = _resolver(page_store)

    result = await resolver.resolve_page_version("home")
    assert result.version.version == 1
    assert result.matched_by == "wildcard"

    page_store.add(make_version(3, published_at=NOW - timedelta(days=1)))
    result = await resolver.resolve_page_version("home")
    assert result.version.version == 3


@pytest.mark.asyncio
async def test_tagged_version_needs_matching_request(page_store, make_version):
    page_store.add(make_version(1, tags={"campaign": "summer"}))
    resolver = _resolver(page_store)

    assert await resolver.resolve_page_version("home") is None
    assert await resolver.resolve_page_version("home", _context(campaign="winter")) is None


@pytest.mark.asyncio
async def test_geo_targeted_version(page_store, make_version):
    page_store.add(make_version(1, tags={}, is_default=True))
    page_store.add(make_version(2, tags={"address_states": ["CA", "NV"]}))
    resolver = _resolver(page_store)

    ca = await resolver.resolve_page_version("home", _context(address_state="ca"))
    tx = await resolver.resolve_page_version("home", _context(address_state="TX"))

    assert ca.version.version == 2
    assert ca.matched_by == "addressState"
    assert tx.version.version == 1


@pytest.mark.asyncio
async def test_resolution_is_deterministic(page_store, make_version):
    for number in range(1, 6):
        page_store.add(make_version(number, tags={"campaign": "summer"}, priority=number % 2))
    resolver = _resolver(page_store)
    context = _context(campaign="summer")

    first = await resolver.resolve_page_version("home", context)
    second = await resolver.resolve_page_version("home", context)

    assert first.version.version == second.version.version == 5


# ── Status And Window ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_drafts_only_in_preview(page_store, make_version):
    page_store.add(make_version(1, status=VersionStatus.DRAFT))
    resolver = _resolver(page_store)

    assert await resolver.resolve_page_version("home") is None
    preview = await resolver.resolve_page_version("home", include_draft=True)
    assert preview.version.version == 1


@pytest.mark.asyncio
async def test_published_wins_tie_in_preview(page_store, make_version):
    page_store.add(make_version(1))
    page_store.add(make_version(2, status=VersionStatus.DRAFT))
    resolver = _resolver(page_store)

    result = await resolver.resolve_page_version("home", include_draft=True)

    assert result.version.version == 1


@pytest.mark.asyncio
async def test_expired_version_is_skipped(page_store, make_version):
    page_store.add(make_version(1, tags={}, is_default=True))
    page_store.add(
        make_version(2, tags={"campaign": "summer"}, active_to=NOW - timedelta(minutes=1))
    )
    resolver = _resolver(page_store)

    result = await resolver.resolve_page_version("home", _context(campaign="summer"))

    assert result.version.version == 1


@pytest.mark.asyncio
async def test_window_can_be_ignored(page_store, make_version):
    page_store.add(make_version(1, active_from=NOW + timedelta(days=1)))
    resolver = _resolver(page_store)

    assert await resolver.resolve_page_version("home") is None
    result = await resolver.resolve_page_version("home", respect_active_window=False)
    assert result.version.version == 1


@pytest.mark.asyncio
async def test_explicit_now_overrides_clock(page_store, make_version):
    page_store.add(make_version(1, active_from=NOW + timedelta(days=1)))
    resolver = _resolver(page_store)

    result = await resolver.resolve_page_version("home", now=NOW + timedelta(days=2))

    assert result.version.version == 1


@pytest.mark.asyncio
async def test_last_resort_default_ignores_window(page_store, make_version):
    page_store.add(make_version(1, is_default=True, active_to=NOW - timedelta(days=7)))
    page_store.add(make_version(2, tags={"campaign": "summer"}))
    resolver = _resolver(page_store)

    result = await resolver.resolve_page_version("home", _context(campaign="winter"))

    assert result.version.version == 1
    assert result.matched_by == "default"
    assert result.specificity == 0


def test_is_within_window_treats_naive_as_utc(make_version):
    version = make_version(1, active_from=datetime(2026, 6, 1, 11, 0), active_to=datetime(2026, 6, 1, 13, 0))
    assert is_within_window(version, NOW) is True
    assert is_within_window(version, NOW + timedelta(hours=2)) is False


# ── Failure And Listing ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_unknown_slug_is_none(page_store, make_version):
    page_store.add(make_version(1))
    assert await _resolver(page_store).resolve_page_version("about") is None


@pytest.mark.asyncio
async def test_store_error_resolves_to_none(page_store, make_version):
    page_store.add(make_version(1))
    page_store.fail_with = OperationalError("SELECT 1", {}, Exception("connection refused"))

    assert await _resolver(page_store).resolve_page_version("home") is None


@pytest.mark.asyncio
async def test_connection_error_resolves_to_none(page_store, make_version):
    page_store.add(make_version(1))
    page_store.fail_with = ConnectionRefusedError(111, "Connection refused")

    assert await _resolver(page_store).resolve_page_version("home") is None


@pytest.mark.asyncio
async def test_slow_store_is_bounded_by_timeout(page_store, make_version):
    page_store.add(make_version(1))
    page_store.delay = 3600
    resolver = PageVersionResolver(page_store, clock=lambda: NOW, lookup_timeout_seconds=0.05)

    result = await asyncio.wait_for(resolver.resolve_page_version("home"), timeout=1)
    versions = await asyncio.wait_for(resolver.list_versions("home"), timeout=1)

    assert result is None
    assert versions == []


@pytest.mark.asyncio
async def test_list_versions_filters_by_status(page_store, make_version):
    page_store.add(make_version(1))
    page_store.add(make_version(2, status=VersionStatus.DRAFT))
    resolver = _resolver(page_store)

    all_versions = await resolver.list_versions("home")
    published = await resolver.list_versions("home", status=VersionStatus.PUBLISHED)

    assert [v.version for v in all_versions] == [2, 1]
    assert [v.version for v in published] == [1]


@pytest.mark.asyncio
async def test_list_versions_store_error_is_empty(page_store):
    page_store.fail_with = OperationalError("SELECT 1", {}, Exception("connection refused"))
    assert await _resolver(page_store).list_versions("home") == []

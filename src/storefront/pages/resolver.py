"""Page version resolution and publishing.

PageVersionResolver picks the version of a page slug to render for a request:

1. Load the slug's versions; keep published ones (drafts too in preview).
2. Drop versions outside their active window.
3. Drop versions whose tags disagree with the request context (TagMatcher).
4. Order survivors by specificity, priority, is_default, published before
   draft, recency and finally version number; the first one wins.
5. If nothing survived, fall back to an untagged default version.

update_page_publishing() applies partial updates to a version's publishing
fields. Marking a version as default does not clear other defaults; the
ordering above decides between several defaults.

Every store call is bounded by lookup_timeout_seconds. Store failures
(SQLAlchemy errors, connection errors, timeouts) are logged and reported
as None, or an empty list for list_versions.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timezone
from typing import Any, Protocol, TypeVar

import structlog
from sqlalchemy.exc import SQLAlchemyError

from src.storefront.core.monitoring import page_resolutions_total
from src.storefront.pages.matcher import TagMatch, TagMatcher
from src.storefront.pages.schemas import (
    PageResolution,
    PageVersion,
    PublishingUpdate,
    RequestContext,
    VersionStatus,
)

logger = structlog.get_logger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

STORE_ERRORS = (SQLAlchemyError, OSError, asyncio.TimeoutError)

R = TypeVar("R")


class PageVersionStore(Protocol):
    """Version storage operations the resolver depends on."""

    async def list_versions(self, slug: str) -> list[PageVersion]: ...

    async def get_version(self, slug: str, version: int) -> PageVersion | None: ...

    async def update_version(
        self, slug: str, version: int, values: dict[str, Any]
    ) -> PageVersion | None: ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_within_window(version: PageVersion, now: datetime) -> bool:
    """True if now falls inside the version's active window (unset bounds are open)."""
    active_from = _as_utc(version.active_from)
    active_to = _as_utc(version.active_to)
    if active_from is not None and active_from > now:
        return False
    if active_to is not None and active_to < now:
        return False
    return True


def _recency(version: PageVersion) -> datetime:
    return _as_utc(version.published_at) or _as_utc(version.created_at) or _EPOCH


def _rank(version: PageVersion, match: TagMatch) -> tuple:
    return (
        match.specificity,
        version.priority,
        version.is_default,
        version.status == VersionStatus.PUBLISHED,
        _recency(version),
        version.version,
    )


class PageVersionResolver:
    """Selects page versions for requests and updates publishing fields.

    Args:
        repository: Version store (PageVersionRepository or a test double).
        matcher: Tag matcher; defaults to TagMatcher().
        clock: Returns the current aware datetime; injectable for tests.
        lookup_timeout_seconds: Upper bound for each store call.
    """

    def __init__(
        self,
        repository: PageVersionStore,
        matcher: TagMatcher | None = None,
        clock: Callable[[], datetime] = _utc_now,
        lookup_timeout_seconds: float = 2.0,
    ) -> None:
        self._repository = repository
        self._matcher = matcher or TagMatcher()
        self._clock = clock
        self._timeout = lookup_timeout_seconds

    async def _bounded(self, call: Awaitable[R]) -> R:
        return await asyncio.wait_for(call, timeout=self._timeout)

    # ── Resolution ──────────────────────────────────────────────────────────

    async def resolve_page_version(
        self,
        slug: str,
        tags: RequestContext | None = None,
        include_draft: bool = False,
        respect_active_window: bool = True,
        now: datetime | None = None,
    ) -> PageResolution | None:
        """Pick the version of a slug to render for a request context.

        Args:
            slug: Page slug.
            tags: Request targeting context; None matches untagged versions only
                (tagged versions need a matching request value).
            include_draft: Also consider drafts (preview); published versions
                still win ties.
            respect_active_window: Drop versions outside active_from/active_to.
            now: Evaluation time; defaults to the resolver clock.

        Returns:
            PageResolution, or None when no version is eligible or the store
            is unavailable.
        """
        try:
            versions = await self._bounded(self._repository.list_versions(slug))
        except STORE_ERRORS:
            logger.error("page_resolver.store_failed", slug=slug, exc_info=True)
            page_resolutions_total.labels(outcome="error").inc()
            return None

        now = _as_utc(now) or self._clock()
        eligible = [v for v in versions if self._status_eligible(v, include_draft)]

        best: tuple[tuple, PageVersion, TagMatch] | None = None
        for version in eligible:
            if respect_active_window and not is_within_window(version, now):
                continue
            match = self._matcher.match(version.tags, tags)
            if match is None:
                continue
            rank = _rank(version, match)
            if best is None or rank > best[0]:
                best = (rank, version, match)

        if best is not None:
            _, version, match = best
            if match.matched_by:
                matched_by = match.matched_by
            elif version.is_default:
                matched_by = "default"
            else:
                matched_by = "wildcard"
            page_resolutions_total.labels(outcome="matched").inc()
            logger.debug(
                "page_resolver.resolved",
                slug=slug,
                version=version.version,
                matched_by=matched_by,
                specificity=match.specificity,
            )
            return PageResolution(
                version=version, matched_by=matched_by, specificity=match.specificity
            )

        fallback = self._last_resort_default(eligible)
        if fallback is not None:
            page_resolutions_total.labels(outcome="default").inc()
            logger.debug(
                "page_resolver.default_fallback",
                slug=slug,
                version=fallback.version,
            )
            return PageResolution(version=fallback, matched_by="default", specificity=0)

        page_resolutions_total.labels(outcome="not_found").inc()
        logger.debug("page_resolver.not_found", slug=slug, version_count=len(versions))
        return None

    @staticmethod
    def _status_eligible(version: PageVersion, include_draft: bool) -> bool:
        if version.status == VersionStatus.PUBLISHED:
            return True
        return include_draft and version.status == VersionStatus.DRAFT

    @staticmethod
    def _last_resort_default(versions: Iterable[PageVersion]) -> PageVersion | None:
        """Untagged default version, ignoring active windows."""
        defaults = [v for v in versions if v.is_default and v.is_untagged]
        if not defaults:
            return None
        return max(
            defaults,
            key=lambda v: (
                v.priority,
                v.status == VersionStatus.PUBLISHED,
                _recency(v),
                v.version,
            ),
        )

    async def list_versions(
        self, slug: str, status: VersionStatus | None = None
    ) -> list[PageVersion]:
        """List a slug's versions, optionally filtered by status."""
        try:
            versions = await self._bounded(self._repository.list_versions(slug))
        except STORE_ERRORS:
            logger.error("page_resolver.list_failed", slug=slug, exc_info=True)
            return []
        if status is not None:
            versions = [v for v in versions if v.status == status]
        return versions

    # ── Publishing ──────────────────────────────────────────────────────────

    async def update_page_publishing(
        self, slug: str, update: PublishingUpdate
    ) -> PageVersion | None:
        """Apply the explicitly provided publishing fields to one version.

        An explicit None clears tags, window bounds or comment and resets
        priority to 0. Publishing stamps published_at unless already set.

        Returns:
            The updated version, or None if (slug, version_number) doesn't
            exist or the store is unavailable.
        """
        try:
            current = await self._bounded(
                self._repository.get_version(slug, update.version_number)
            )
        except STORE_ERRORS:
            logger.error(
                "page_publishing.store_failed",
                slug=slug,
                version=update.version_number,
                exc_info=True,
            )
            return None
        if current is None:
            logger.info(
                "page_publishing.version_not_found",
                slug=slug,
                version=update.version_number,
            )
            return None

        values: dict[str, Any] = {}
        for field in update.model_fields_set - {"version_number"}:
            value = getattr(update, field)
            if field == "priority" and value is None:
                value = 0
            elif field == "is_default" and value is None:
                value = False
            elif field == "status" and value is None:
                continue
            values[field] = value

        if values.get("status") == VersionStatus.PUBLISHED and current.published_at is None:
            values["published_at"] = self._clock()

        if not values:
            return current

        try:
            updated = await self._bounded(
                self._repository.update_version(slug, update.version_number, values)
            )
        except STORE_ERRORS:
            logger.error(
                "page_publishing.update_failed",
                slug=slug,
                version=update.version_number,
                exc_info=True,
            )
            return None
        if updated is None:
            return None
        logger.info(
            "page_publishing.updated",
            slug=slug,
            version=update.version_number,
            fields=sorted(values),
        )
        return updated

"""Page version repository -- async reads and publishing updates.

Provides PageVersionRepository with the session_factory callable pattern.
The factory is expected to yield tenant-scoped sessions (get_tenant_session),
so every query runs against the current tenant's page_versions table.

Tags are stored as a JSON document and deserialized via model_validate();
rows that predate the tags document fall back to the legacy single "tag"
column as the campaign.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from typing import Any

import structlog
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.storefront.pages.models import PageVersionModel
from src.storefront.pages.schemas import PageVersion, VersionStatus, VersionTags

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = frozenset(
    {
        "tags",
        "priority",
        "is_default",
        "active_from",
        "active_to",
        "comment",
        "status",
        "published_at",
    }
)


# ── Serialization Helpers ───────────────────────────────────────────────────


def _model_to_tags(model: PageVersionModel) -> VersionTags | None:
    tags: VersionTags | None = None
    if model.tags:
        try:
            tags = VersionTags.model_validate(model.tags)
        except ValidationError:
            logger.warning(
                "page_repository.invalid_tags",
                slug=model.slug,
                version=model.version,
            )
    if (tags is None or tags.campaign is None) and model.tag:
        tags = (tags or VersionTags()).model_copy(update={"campaign": model.tag})
    return tags


def _model_to_version(model: PageVersionModel) -> PageVersion:
    """Convert PageVersionModel to PageVersion schema."""
    try:
        status = VersionStatus(model.status)
    except ValueError:
        status = VersionStatus.DRAFT

    return PageVersion(
        slug=model.slug,
        version=model.version,
        status=status,
        tags=_model_to_tags(model),
        priority=model.priority or 0,
        is_default=bool(model.is_default),
        active_from=model.active_from,
        active_to=model.active_to,
        comment=model.comment,
        blocks=model.blocks or [],
        seo=model.seo,
        created_by=model.created_by,
        created_at=model.created_at,
        last_saved_at=model.last_saved_at,
        published_at=model.published_at,
    )


def _to_column_value(field: str, value: Any) -> Any:
    if field == "tags" and isinstance(value, VersionTags):
        return value.model_dump(mode="json")
    if field == "status" and isinstance(value, VersionStatus):
        return value.value
    return value


# ── Repository ──────────────────────────────────────────────────────────────


class PageVersionRepository:
    """Async access to a tenant's page versions.

    Args:
        session_factory: Async callable that yields tenant-scoped AsyncSession
            instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def list_versions(self, slug: str) -> list[PageVersion]:
        """List every version of a slug, newest version number first."""
        async for session in self._session_factory():
            stmt = (
                select(PageVersionModel)
                .where(PageVersionModel.slug == slug)
                .order_by(PageVersionModel.version.desc())
            )
            result = await session.execute(stmt)
            return [_model_to_version(m) for m in result.scalars().all()]
        return []

    async def get_version(self, slug: str, version: int) -> PageVersion | None:
        """Get one version by (slug, version number), or None."""
        async for session in self._session_factory():
            model = await self._load(session, slug, version)
            if model is None:
                return None
            return _model_to_version(model)
        return None

    async def update_version(
        self, slug: str, version: int, values: dict[str, Any]
    ) -> PageVersion | None:
        """Apply column updates to one version.

        Args:
            slug: Page slug.
            version: Version number.
            values: Field name to new value; unknown fields are ignored.

        Returns:
            The updated PageVersion, or None if the version doesn't exist.
        """
        async for session in self._session_factory():
            model = await self._load(session, slug, version)
            if model is None:
                return None
            for field, value in values.items():
                if field in UPDATABLE_FIELDS:
                    setattr(model, field, _to_column_value(field, value))
            await session.commit()
            await session.refresh(model)
            return _model_to_version(model)
        return None

    @staticmethod
    async def _load(session: AsyncSession, slug: str, version: int) -> PageVersionModel | None:
        stmt = select(PageVersionModel).where(
            PageVersionModel.slug == slug,
            PageVersionModel.version == version,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

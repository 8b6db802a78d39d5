"""Pydantic schemas for page versions, targeting tags and request context.

Defines:
- Enums: VersionStatus, ContextSource
- Targeting: VersionAttributes, VersionTags
- PageVersion: one stored content version of a page slug
- RequestContext: per-request targeting input, merged from several sources
- PublishingUpdate: partial update applied by the publishing operation
- PageResolution: the resolved version plus how it was matched
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

ATTRIBUTE_KEYS = ("region", "language", "device")


# ── Enums ───────────────────────────────────────────────────────────────────


class VersionStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class ContextSource(str, Enum):
    """Where a request context came from (debugging / merge provenance)."""

    URL = "url"
    SESSION = "session"
    COOKIE = "cookie"
    SEGMENT = "segment"
    LANGUAGE = "language"
    DEFAULT = "default"


# ── Targeting Tags ──────────────────────────────────────────────────────────


class VersionAttributes(BaseModel):
    """Attribute targeting; only region, language and device are recognised."""

    model_config = ConfigDict(extra="ignore")

    region: str | None = None
    language: str | None = None
    device: str | None = None

    def as_dict(self) -> dict[str, str]:
        return {k: v for k, v in self.model_dump().items() if v}


class VersionTags(BaseModel):
    """Targeting criteria attached to a page version.

    Unset dimensions are wildcards. address_states lists the delivery
    address states (e.g. "CA", "NY") a geo-targeted version is shown for.
    """

    campaign: str | None = None
    segment: str | None = None
    attributes: VersionAttributes = Field(default_factory=VersionAttributes)
    address_states: list[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.campaign or self.segment or self.attributes.as_dict() or self.address_states
        )


# ── Page Version ────────────────────────────────────────────────────────────


class PageVersion(BaseModel):
    """One stored version of a page.

    blocks and seo are opaque content payloads handed to the renderer.
    """

    model_config = ConfigDict(from_attributes=True)

    slug: str
    version: int
    status: VersionStatus = VersionStatus.DRAFT
    tags: VersionTags | None = None
    priority: int = 0
    is_default: bool = False
    active_from: datetime | None = None
    active_to: datetime | None = None
    comment: str | None = None
    blocks: list[dict[str, Any]] = Field(default_factory=list)
    seo: dict[str, Any] | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    last_saved_at: datetime | None = None
    published_at: datetime | None = None

    @property
    def is_untagged(self) -> bool:
        return self.tags is None or self.tags.is_empty()


# ── Request Context ─────────────────────────────────────────────────────────


class RequestContext(BaseModel):
    """Targeting context of a single request.

    Built from query parameters, the campaign cookie and the resolved
    delivery address; several partial contexts are merged with
    merge_contexts().
    """

    campaign: str | None = None
    segment: str | None = None
    attributes: dict[str, str] = Field(default_factory=dict)
    address_state: str | None = None
    source: ContextSource | None = None
    landing_page: str | None = None
    landed_at: str | None = None
    utm: dict[str, str] = Field(default_factory=dict)

    def has_data(self) -> bool:
        return bool(self.campaign or self.segment or self.attributes or self.address_state)


# ── Publishing ──────────────────────────────────────────────────────────────


class PublishingUpdate(BaseModel):
    """Partial update of a version's publishing fields.

    Only fields explicitly set are applied (see model_fields_set); setting a
    field to None clears it.
    """

    version_number: int
    tags: VersionTags | None = None
    priority: int | None = None
    is_default: bool | None = None
    active_from: datetime | None = None
    active_to: datetime | None = None
    comment: str | None = None
    status: VersionStatus | None = None


# ── Resolution ──────────────────────────────────────────────────────────────


class PageResolution(BaseModel):
    """A resolved page version and the targeting dimensions that selected it."""

    version: PageVersion
    matched_by: str
    specificity: int = 0

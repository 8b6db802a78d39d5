"""Page version persistence model -- tenant-scoped table.

Uses TenantBase, so the "tenant" placeholder schema is remapped at runtime
to the current tenant's database schema via schema_translate_map.

Rows are created as drafts by the page builder (outside this service) and
only ever updated here; (slug, version) is immutable once created.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.storefront.core.database import TenantBase


class PageVersionModel(TenantBase):
    """One content version of a page slug.

    tags holds the targeting document ({campaign, segment, attributes,
    address_states}); tag is the legacy single-campaign column still present
    on older rows.
    """

    __tablename__ = "page_versions"
    __table_args__ = (
        UniqueConstraint("slug", "version", name="uq_page_versions_slug_version"),
        {"schema": "tenant"},
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    slug: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="draft", server_default=text("'draft'"))
    tags: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    tag: Mapped[str | None] = mapped_column(String(200), nullable=True)
    priority: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, server_default=text("false"))
    active_from: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    active_to: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    blocks: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    seo: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    last_saved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

"""Shared schema models -- the tenant registry and administrative tokens.

These tables exist once in the 'shared' schema. They are written by the
external tenant administration process and only read by this service.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, func, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.storefront.core.database import SharedBase


class TenantModel(SharedBase):
    """Registered storefront tenant.

    status is "active" for tenants that may be resolved; any other value
    (e.g. "suspended") hides the tenant from hostname resolution.
    """

    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    project_code: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="active", server_default=text("'active'"))

    pim_api_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    b2b_api_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    api_key_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    api_secret: Mapped[str | None] = mapped_column(String(500), nullable=True)

    database_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    database_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    require_login: Mapped[bool] = mapped_column(Boolean, default=False, server_default=text("false"))
    home_settings_customer_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    builder_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )

    domains: Mapped[list[TenantDomainModel]] = relationship(
        back_populates="tenant",
        lazy="selectin",
        order_by="TenantDomainModel.id",
    )


class TenantDomainModel(SharedBase):
    """A hostname owned by a tenant. Hostnames are stored lower-case."""

    __tablename__ = "tenant_domains"
    __table_args__ = (
        Index("ix_tenant_domains_hostname", "hostname"),
        {"schema": "shared"},
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("shared.tenants.id", ondelete="CASCADE"),
        nullable=False,
    )
    hostname: Mapped[str] = mapped_column(String(255), nullable=False)
    is_primary: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    is_active: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    tenant: Mapped[TenantModel] = relationship(back_populates="domains")


class AdminTokenModel(SharedBase):
    """Token authorizing calls to the administrative endpoints.

    Only the bcrypt hash of the token is stored.
    """

    __tablename__ = "admin_tokens"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    token_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool | None] = mapped_column(Boolean, default=True, server_default=text("true"))
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

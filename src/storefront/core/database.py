"""Async SQLAlchemy engine and schema-scoped sessions.

Tables are declared against two placeholder schemas and remapped per
connection with schema_translate_map:

- "shared" (SharedBase): tenants, tenant_domains, admin_tokens; mapped to
  SHARED_SCHEMA.
- "tenant" (TenantBase): page_versions; mapped to the database name of the
  tenant bound to the current request (e.g. "tenant_acme").
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from sqlalchemy import MetaData, text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from src.storefront.config import get_settings
from src.storefront.core.tenant import get_current_tenant

SHARED_PLACEHOLDER = "shared"
TENANT_PLACEHOLDER = "tenant"

_engine: AsyncEngine | None = None


def get_engine() -> AsyncEngine:
    """Lazily created engine shared by the whole process."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            settings.DATABASE_URL,
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=10,
            pool_pre_ping=True,
        )
    return _engine


class SharedBase(DeclarativeBase):
    """Models of the shared registry schema."""

    metadata = MetaData(schema=SHARED_PLACEHOLDER)


class TenantBase(DeclarativeBase):
    """Models living in each tenant's own schema."""

    metadata = MetaData(schema=TENANT_PLACEHOLDER)


async def _scoped(conn: AsyncConnection, schema_map: dict[str, str]) -> AsyncConnection:
    return await conn.execution_options(schema_translate_map=schema_map)


async def get_shared_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an AsyncSession on the shared schema."""
    shared_schema = get_settings().SHARED_SCHEMA
    async with get_engine().connect() as conn:
        conn = await _scoped(conn, {SHARED_PLACEHOLDER: shared_schema})
        async with AsyncSession(bind=conn, expire_on_commit=False) as session:
            yield session


async def get_tenant_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an AsyncSession on the current tenant's schema.

    Raises RuntimeError outside a tenant-scoped request.
    """
    tenant = get_current_tenant()
    async with get_engine().connect() as conn:
        conn = await _scoped(conn, {TENANT_PLACEHOLDER: tenant.database.name})
        async with AsyncSession(bind=conn, expire_on_commit=False) as session:
            yield session


async def init_db() -> None:
    """Create the shared schema and its tables if missing."""
    shared_schema = get_settings().SHARED_SCHEMA
    async with get_engine().begin() as conn:
        await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{shared_schema}"'))
        conn = await _scoped(conn, {SHARED_PLACEHOLDER: shared_schema})
        await conn.run_sync(SharedBase.metadata.create_all)


async def close_db() -> None:
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None

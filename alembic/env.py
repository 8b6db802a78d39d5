"""Alembic environment for the shared and per-tenant schemas.

Two version branches live in alembic/versions:
  shared  -- tenants, tenant_domains, admin_tokens (schema "shared")
  tenant  -- page_versions (schema "tenant", translated per tenant)

Usage:
  alembic -x schema=shared upgrade shared@head
  alembic -x schema=tenant_acme upgrade tenant@head

Each schema keeps its own alembic_version table, so every tenant schema
is migrated and tracked on its own.
"""

import re
from logging.config import fileConfig

from alembic import context
from sqlalchemy import MetaData, create_engine, pool, text

import src.storefront.pages.models  # noqa: F401
import src.storefront.tenants.models  # noqa: F401
from src.storefront.config import get_settings
from src.storefront.core.database import SharedBase, TenantBase

SHARED_SCHEMA = "shared"
_SCHEMA_NAME = re.compile(r"^[a-z_][a-z0-9_]{0,62}$")

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _target_schema() -> str:
    schema = context.get_x_argument(as_dictionary=True).get("schema", SHARED_SCHEMA)
    if not _SCHEMA_NAME.match(schema):
        raise ValueError(f"Invalid schema name for migration: {schema!r}")
    return schema


def _metadata_for(schema: str) -> MetaData:
    return SharedBase.metadata if schema == SHARED_SCHEMA else TenantBase.metadata


def _physical_schema(schema: str) -> str:
    return get_settings().SHARED_SCHEMA if schema == SHARED_SCHEMA else schema


def _schema_translate_map(schema: str) -> dict[str, str]:
    # Models are declared against the placeholder schemas "shared" and "tenant"
    if schema == SHARED_SCHEMA:
        return {SHARED_SCHEMA: _physical_schema(schema)}
    return {"tenant": schema}


def _sync_url() -> str:
    """Migrations run on the sync psycopg2 driver."""
    return get_settings().DATABASE_URL.replace("+asyncpg", "")


target_schema = _target_schema()
target_metadata = _metadata_for(target_schema)
version_schema = _physical_schema(target_schema)


def run_migrations_offline() -> None:
    """Emit SQL for the target schema without a database connection."""
    context.configure(
        url=_sync_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        version_table_schema=version_schema,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Migrate the target schema over a live connection, creating it if needed."""
    engine = create_engine(_sync_url(), poolclass=pool.NullPool)

    with engine.connect() as connection:
        connection.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{version_schema}"'))
        connection.commit()

        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            version_table_schema=version_schema,
            include_schemas=True,
            schema_translate_map=_schema_translate_map(target_schema),
        )

        with context.begin_transaction():
            context.run_migrations()

    engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()

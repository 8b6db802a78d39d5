"""Multi-tenant migration helpers.

Provides functions to run Alembic migrations across all tenant schemas
or for a specific tenant schema.
"""

from __future__ import annotations

import argparse

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, text

from src.storefront.config import get_settings
from src.storefront.tenants.schemas import default_database_name


def _get_alembic_config(schema_name: str) -> Config:
    """Create an Alembic Config pointing to alembic.ini with -x schema=<schema_name>."""
    config = Config("alembic.ini")
    config.cmd_opts = argparse.Namespace(x=[f"schema={schema_name}"])
    return config


def migrate_shared(direction: str = "upgrade", revision: str = "shared@head") -> None:
    """Run migrations for the shared schema."""
    _run(_get_alembic_config("shared"), direction, revision)


def migrate_tenant(schema_name: str, direction: str = "upgrade", revision: str = "tenant@head") -> None:
    """Run migration for a single tenant schema.

    Args:
        schema_name: The tenant schema name (e.g., "tenant_acme")
        direction: "upgrade" or "downgrade"
        revision: Target revision (default: "tenant@head")
    """
    _run(_get_alembic_config(schema_name), direction, revision)


def _run(config: Config, direction: str, revision: str) -> None:
    if direction == "upgrade":
        command.upgrade(config, revision)
    elif direction == "downgrade":
        command.downgrade(config, revision)
    else:
        raise ValueError(f"Invalid direction: {direction}")


def migrate_all_tenants(direction: str = "upgrade", revision: str = "tenant@head") -> list[str]:
    """Run migrations for every active tenant's schema.

    Reads shared.tenants and migrates each tenant's database_name (or the
    default tenant_<id> schema when none is configured).

    Returns:
        List of schema names that were migrated.
    """
    settings = get_settings()
    sync_url = settings.DATABASE_URL.replace("+asyncpg", "")
    engine = create_engine(sync_url)

    migrated = []
    with engine.connect() as conn:
        result = conn.execute(
            text(
                f'SELECT id, database_name FROM "{settings.SHARED_SCHEMA}".tenants'
                " WHERE status = 'active'"
            )
        )
        schemas = [row.database_name or default_database_name(row.id) for row in result]

    for schema_name in schemas:
        migrate_tenant(schema_name, direction, revision)
        migrated.append(schema_name)

    engine.dispose()
    return migrated

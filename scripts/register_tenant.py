#!/usr/bin/env python3
"""CLI script to register a storefront tenant and its hostnames.

Usage:
    uv run python scripts/register_tenant.py --id acme --project-code acme-shop \
        --domain shop.acme.com --domain acme.localhost:3000
    uv run python scripts/register_tenant.py --id acme --project-code acme-shop \
        --pim-api-url https://pim.acme.com --b2b-api-url https://b2b.acme.com/api/v1

Connects directly to the database using DATABASE_URL from environment or .env file.
Hostnames are stored lower-case. Running services pick the tenant up once
their cached lookup expires, or immediately after POST /api/admin/clear-tenant-cache.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

# Ensure project root is on sys.path so we can import src.storefront
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


async def register(args: argparse.Namespace) -> None:
    """Insert the tenant row and its domain rows."""
    from sqlalchemy import text

    from src.storefront.core.database import get_engine, get_shared_session, init_db
    from src.storefront.tenants.models import TenantDomainModel, TenantModel
    from src.storefront.tenants.schemas import default_database_name

    await init_db()

    database_name = args.database_name or default_database_name(args.id)
    async for session in get_shared_session():
        tenant = TenantModel(
            id=args.id,
            name=args.name or args.id,
            project_code=args.project_code,
            pim_api_url=args.pim_api_url,
            b2b_api_url=args.b2b_api_url,
            database_name=database_name,
            require_login=args.require_login,
        )
        session.add(tenant)
        for index, hostname in enumerate(args.domain or []):
            session.add(
                TenantDomainModel(
                    tenant_id=args.id,
                    hostname=hostname.strip().lower(),
                    is_primary=index == 0,
                    is_active=True,
                )
            )
        await session.commit()

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{database_name}"'))

    print(f"Tenant registered: id={args.id}")
    print(f"  Project: {args.project_code}")
    print(f"  Schema:  {database_name}")
    for hostname in args.domain or []:
        print(f"  Domain:  {hostname.strip().lower()}")
    print(f"Run: alembic -x schema={database_name} upgrade tenant@head")

    await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Register a storefront tenant")
    parser.add_argument("--id", required=True, help="Tenant id (e.g., acme)")
    parser.add_argument("--project-code", required=True, help="Project code used by backend APIs")
    parser.add_argument("--name", default=None, help="Display name (defaults to the id)")
    parser.add_argument("--domain", action="append", help="Hostname owned by the tenant (repeatable)")
    parser.add_argument("--pim-api-url", default=None)
    parser.add_argument("--b2b-api-url", default=None)
    parser.add_argument("--database-name", default=None, help="Tenant schema (default tenant_<id>)")
    parser.add_argument("--require-login", action="store_true")
    args = parser.parse_args()

    asyncio.run(register(args))


if __name__ == "__main__":
    main()

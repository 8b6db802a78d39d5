#!/usr/bin/env python3
"""CLI script to issue an admin token for the administrative endpoints.

Usage:
    uv run python scripts/create_admin_token.py --name "tenant-admin"
    uv run python scripts/create_admin_token.py --name "ci" --expires-in-days 30

Connects directly to the database using DATABASE_URL from environment or .env file.
Stores only the bcrypt hash in shared.admin_tokens and prints the plaintext
token once.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone

# Ensure project root is on sys.path so we can import src.storefront
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


async def create_token(name: str, expires_in_days: int | None) -> None:
    """Generate a token, store its hash, and print the plaintext once."""
    from src.storefront.core.database import get_engine, get_shared_session, init_db
    from src.storefront.core.security import generate_token, hash_token
    from src.storefront.tenants.models import AdminTokenModel

    await init_db()

    token = generate_token()
    expires_at = None
    if expires_in_days:
        expires_at = datetime.now(timezone.utc) + timedelta(days=expires_in_days)

    async for session in get_shared_session():
        session.add(
            AdminTokenModel(
                name=name,
                token_hash=hash_token(token),
                is_active=True,
                expires_at=expires_at,
            )
        )
        await session.commit()

    print(f"Admin token created: name={name}")
    print(f"  Expires: {expires_at.isoformat() if expires_at else 'never'}")
    print(f"  Token:   {token}")
    print("Store it now -- it cannot be shown again.")

    engine = get_engine()
    await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Create an admin token")
    parser.add_argument("--name", required=True, help="Label for the token (e.g., 'tenant-admin')")
    parser.add_argument("--expires-in-days", type=int, default=None, help="Token lifetime in days")
    args = parser.parse_args()

    if args.expires_in_days is not None and args.expires_in_days <= 0:
        parser.error("--expires-in-days must be positive")

    asyncio.run(create_token(args.name, args.expires_in_days))


if __name__ == "__main__":
    main()

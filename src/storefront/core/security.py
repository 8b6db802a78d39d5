"""Admin token hashing and request token extraction.

Uses bcrypt directly (not passlib) for Python 3.13 compatibility.
"""

from __future__ import annotations

import secrets
from collections.abc import Mapping

import bcrypt

ADMIN_TOKEN_HEADER = "x-admin-token"


def generate_token() -> str:
    """Generate a random URL-safe admin token."""
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    """Hash a plaintext token using bcrypt."""
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(token.encode("utf-8"), salt).decode("utf-8")


def verify_token_hash(token: str, hashed: str) -> bool:
    """Verify a plaintext token against its bcrypt hash."""
    try:
        return bcrypt.checkpw(token.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the store
        return False


def extract_admin_token(headers: Mapping[str, str]) -> str | None:
    """Read the admin token from x-admin-token or an Authorization bearer."""
    token = headers.get(ADMIN_TOKEN_HEADER)
    if token:
        return token.strip() or None

    auth_header = headers.get("authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None

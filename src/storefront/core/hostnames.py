"""Hostname normalization for tenant lookup.

Tenant domains may be stored with or without a scheme, and requests may
arrive with a port attached. normalize_hostname() expands a raw hostname into
every form the tenant store could hold, in lookup-preference order:

    "Shop.Example.com:8443" -> [
        "shop.example.com:8443",
        "http://shop.example.com:8443",
        "https://shop.example.com:8443",
        "shop.example.com",
        "http://shop.example.com",
        "https://shop.example.com",
    ]

cache_key_for() collapses all of those forms onto one canonical key so that
equivalent raw hostnames share a single cache slot.
"""

from __future__ import annotations

from collections.abc import Mapping

SCHEMES = ("http://", "https://")

TENANT_HOSTNAME_HEADER = "x-tenant-hostname"


def _split_scheme(value: str) -> tuple[str, str]:
    for scheme in SCHEMES:
        if value.startswith(scheme):
            return scheme, value[len(scheme):]
    return "", value


def _strip_port(value: str) -> str:
    scheme, rest = _split_scheme(value)
    return scheme + rest.split(":", 1)[0]


def normalize_hostname(raw: str) -> list[str]:
    """Return the ordered, duplicate-free candidate keys for a raw hostname.

    Empty input yields [""].
    """
    lower = raw.lower()
    candidates: list[str] = [lower]

    if not lower.startswith(SCHEMES):
        candidates.extend(f"{scheme}{lower}" for scheme in SCHEMES)

    without_port = _strip_port(lower)
    if without_port != lower:
        candidates.append(without_port)
        if not without_port.startswith(SCHEMES):
            candidates.extend(f"{scheme}{without_port}" for scheme in SCHEMES)

    # dict preserves first-seen order
    return list(dict.fromkeys(candidates))


def cache_key_for(raw: str) -> str:
    """Canonical cache slot key: lower-case, no scheme, no port."""
    _, rest = _split_scheme(raw.strip().lower())
    return rest.split(":", 1)[0].rstrip("/")


def subdomain_of(raw: str) -> str | None:
    """First DNS label of a hostname, or None for "www" and empty input."""
    label = cache_key_for(raw).split(".", 1)[0]
    if not label or label == "www":
        return None
    return label


def hostname_from_headers(headers: Mapping[str, str]) -> str:
    """Pick the client-facing hostname from request headers.

    An upstream proxy forwards the original hostname in x-tenant-hostname
    when internal routing rewrites the Host header.
    """
    return headers.get(TENANT_HOSTNAME_HEADER) or headers.get("host") or "localhost"

"""Tenant context propagation via Python contextvars.

The TenantHostMiddleware resolves the request hostname to a TenantConfig at
the start of each request and binds it here. Anything further down the call
stack (tenant-scoped DB sessions, page endpoints, Sentry tagging) reads it
with get_current_tenant().
"""

from __future__ import annotations

import contextvars
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.storefront.tenants.schemas import TenantConfig

_tenant_context: contextvars.ContextVar[TenantConfig] = contextvars.ContextVar("tenant_context")


def get_current_tenant() -> TenantConfig:
    """Get the tenant bound to the current request.

    Raises RuntimeError if no tenant has been bound (i.e., the call
    is not within a tenant-scoped request).
    """
    try:
        return _tenant_context.get()
    except LookupError:
        raise RuntimeError("No tenant context set -- request is not tenant-scoped")


def set_tenant_context(tenant: TenantConfig) -> contextvars.Token[TenantConfig]:
    """Bind the tenant for the current request. Returns a token for reset."""
    return _tenant_context.set(tenant)


def reset_tenant_context(token: contextvars.Token[TenantConfig]) -> None:
    _tenant_context.reset(token)

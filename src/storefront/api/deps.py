"""FastAPI dependency injection for tenant context and app.state services.

Services are constructed in the application lifespan and stored on
app.state; endpoints that need one that failed to initialize get a 503.
"""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request, status

from src.storefront.core.tenant import get_current_tenant
from src.storefront.tenants.schemas import TenantConfig


async def get_tenant() -> TenantConfig:
    """Get the current tenant (bound by TenantHostMiddleware)."""
    return get_current_tenant()


def _get_state_service(request: Request, name: str, label: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} not initialized",
        )
    return service


def get_tenant_registry(request: Request) -> Any:
    """Retrieve TenantRegistry from app.state, 503 if not available."""
    return _get_state_service(request, "tenant_registry", "Tenant registry")


def get_page_resolver(request: Request) -> Any:
    """Retrieve PageVersionResolver from app.state, 503 if not available."""
    return _get_state_service(request, "page_resolver", "Page resolver")


def get_admin_token_store(request: Request) -> Any:
    """Retrieve AdminTokenStore from app.state, 503 if not available."""
    return _get_state_service(request, "admin_token_store", "Admin token store")

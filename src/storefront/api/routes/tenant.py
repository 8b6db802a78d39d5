"""Current tenant endpoint.

Exposes the browser-safe subset of the tenant bound to the request
(no API credentials, no database locator). config_error is set when the
tenant is missing required configuration (see has_critical_errors).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.storefront.api.deps import get_tenant
from src.storefront.tenants.schemas import TenantConfig, TenantPublicInfo, to_public_info
from src.storefront.tenants.validation import has_critical_errors

router = APIRouter(prefix="/api/tenant", tags=["tenant"])


@router.get("", response_model=TenantPublicInfo)
async def get_current_tenant_info(tenant: TenantConfig = Depends(get_tenant)) -> TenantPublicInfo:
    """Public info for the request's tenant."""
    return to_public_info(tenant, config_error=has_critical_errors(tenant))

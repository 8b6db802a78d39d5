"""Administrative endpoints.

POST /api/admin/clear-tenant-cache is called by the tenant administration
backend after a tenant's domains or configuration change.

Authentication: an admin token in x-admin-token or Authorization: Bearer,
checked against shared.admin_tokens. Development deployments skip the check.

Body (optional):
    {"hostname": "shop.example.com"}  clear one hostname
    {"tenantId": "acme"}              clear everything (hostnames are not
                                      indexed by tenant)
    {} or no body                     clear everything

A non-string hostname is a 400; a cache backend that cannot apply the
invalidation gives a 503.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from src.storefront.api.deps import get_admin_token_store, get_tenant_registry
from src.storefront.config import get_settings
from src.storefront.core.security import extract_admin_token

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


async def _check_admin_token(request: Request) -> JSONResponse | None:
    """Return a 401 response if the request lacks a valid admin token."""
    if get_settings().admin_auth_disabled:
        return None

    token = extract_admin_token(request.headers)
    if not token:
        logger.warning("admin.missing_token", path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "Missing token"},
        )

    token_store = get_admin_token_store(request)
    if not await token_store.is_valid(token):
        logger.warning("admin.invalid_token", path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "Invalid token"},
        )
    return None


def _cache_unavailable() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"success": False, "error": "Tenant cache unavailable"},
    )


@router.post("/clear-tenant-cache")
async def clear_tenant_cache(request: Request) -> Any:
    """Invalidate cached hostname to tenant resolutions."""
    unauthorized = await _check_admin_token(request)
    if unauthorized is not None:
        return unauthorized

    registry = get_tenant_registry(request)

    try:
        body = await request.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    hostname = body.get("hostname")
    tenant_id = body.get("tenantId")

    if hostname is not None and not isinstance(hostname, str):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "hostname must be a string"},
        )
    hostname = hostname.strip() if hostname else None

    if hostname:
        if not await registry.clear_tenant_cache(hostname):
            return _cache_unavailable()
        logger.info("admin.tenant_cache_cleared", hostname=hostname)
        return {
            "success": True,
            "cleared": "hostname",
            "value": hostname,
            "message": f"Cache cleared for hostname: {hostname}",
        }

    if not await registry.clear_tenant_cache():
        return _cache_unavailable()

    if tenant_id:
        logger.info("admin.tenant_cache_cleared_all", tenant_id=tenant_id)
        return {
            "success": True,
            "cleared": "all",
            "tenantId": tenant_id,
            "message": f"All cache cleared for tenant: {tenant_id}",
        }

    logger.info("admin.tenant_cache_cleared_all")
    return {
        "success": True,
        "cleared": "all",
        "message": "All tenant cache cleared",
    }

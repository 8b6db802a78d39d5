"""Hostname-based tenant resolution middleware.

Resolves the tenant for every request from the x-tenant-hostname header
(set by an upstream proxy) or the Host header, through the TenantRegistry on
app.state. Resolution fails open: an unknown hostname or an unavailable
tenant store binds the environment default tenant instead of failing the
request.

After resolution, binds the TenantConfig in contextvars for the request
scope and leaves its id on request.state for the outer middlewares.
"""

from __future__ import annotations

import structlog
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.storefront.core.hostnames import hostname_from_headers
from src.storefront.core.tenant import reset_tenant_context, set_tenant_context
from src.storefront.tenants.validation import log_tenant_config_issues

logger = structlog.get_logger(__name__)

# Paths that never need a tenant
SKIP_TENANT_PATHS = (
    "/health",
    "/metrics",
    "/docs",
    "/openapi.json",
    "/redoc",
)


class TenantHostMiddleware(BaseHTTPMiddleware):
    """Binds the request's tenant, resolved from its hostname.

    The registry is read from app.state.tenant_registry on each request,
    since it is only built in the application lifespan. Configuration
    issues of a tenant are logged the first time it is bound.
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        self._checked_tenants: set[str] = set()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if any(path.startswith(skip) for skip in SKIP_TENANT_PATHS):
            return await call_next(request)

        registry = getattr(request.app.state, "tenant_registry", None)
        if registry is None:
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"detail": "Tenant registry not initialized"},
            )

        hostname = hostname_from_headers(request.headers)
        tenant = await registry.resolve_or_default(hostname)

        if tenant.id not in self._checked_tenants:
            self._checked_tenants.add(tenant.id)
            log_tenant_config_issues(tenant, context="tenant_middleware")

        request.state.tenant_id = tenant.id
        request.state.tenant_hostname = hostname

        token = set_tenant_context(tenant)
        try:
            return await call_next(request)
        finally:
            reset_tenant_context(token)

"""TenantHostMiddleware tests: hostname resolution, fallback and skip paths."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from src.storefront.api.middleware.tenant import TenantHostMiddleware
from src.storefront.config import TenantMode
from src.storefront.core.cache import MemoryTTLCache
from src.storefront.core.tenant import get_current_tenant
from src.storefront.tenants.registry import TenantRegistry


def _make_app(registry) -> FastAPI:
    app = FastAPI()
    app.add_middleware(TenantHostMiddleware)
    app.state.tenant_registry = registry

    @app.get("/whoami")
    async def whoami(request: Request):
        return {
            "tenant": get_current_tenant().id,
            "state_tenant": request.state.tenant_id,
            "hostname": request.state.tenant_hostname,
        }

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


def _registry(tenant_store, make_tenant, fake_clock) -> TenantRegistry:
    return TenantRegistry(
        store=tenant_store,
        cache=MemoryTTLCache(default_ttl=300, clock=fake_clock),
        default_tenant=make_tenant("default"),
        mode=TenantMode.multi,
    )


async def _get(app: FastAPI, path: str, **kwargs):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.get(path, **kwargs)


@pytest.mark.asyncio
async def test_binds_tenant_from_host_header(tenant_store, make_tenant, fake_clock):
    tenant_store.tenants.append(make_tenant("acme", domains=["shop.example.com"]))
    app = _make_app(_registry(tenant_store, make_tenant, fake_clock))

    response = await _get(app, "/whoami", headers={"host": "shop.example.com:8080"})

    assert response.status_code == 200
    assert response.json() == {
        "tenant": "acme",
        "state_tenant": "acme",
        "hostname": "shop.example.com:8080",
    }


@pytest.mark.asyncio
async def test_proxy_header_wins_over_host(tenant_store, make_tenant, fake_clock):
    tenant_store.tenants.append(make_tenant("acme", domains=["shop.example.com"]))
    app = _make_app(_registry(tenant_store, make_tenant, fake_clock))

    response = await _get(
        app,
        "/whoami",
        headers={"host": "internal.local", "x-tenant-hostname": "shop.example.com"},
    )

    assert response.json()["tenant"] == "acme"


@pytest.mark.asyncio
async def test_unknown_hostname_falls_back_to_default(tenant_store, make_tenant, fake_clock):
    app = _make_app(_registry(tenant_store, make_tenant, fake_clock))

    response = await _get(app, "/whoami", headers={"host": "nowhere.example.com"})

    assert response.status_code == 200
    assert response.json()["tenant"] == "default"


@pytest.mark.asyncio
async def test_store_failure_falls_back_to_default(tenant_store, make_tenant, fake_clock):
    tenant_store.fail_with = RuntimeError("database unavailable")
    app = _make_app(_registry(tenant_store, make_tenant, fake_clock))

    response = await _get(app, "/whoami", headers={"host": "shop.example.com"})

    assert response.status_code == 200
    assert response.json()["tenant"] == "default"


@pytest.mark.asyncio
async def test_skip_paths_need_no_registry():
    app = _make_app(None)

    response = await _get(app, "/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_missing_registry_returns_503():
    app = _make_app(None)

    response = await _get(app, "/whoami")

    assert response.status_code == 503
    assert response.json() == {"detail": "Tenant registry not initialized"}


@pytest.mark.asyncio
async def test_config_issues_logged_once_per_tenant(tenant_store, make_tenant, fake_clock):
    app = _make_app(_registry(tenant_store, make_tenant, fake_clock))

    with patch("src.storefront.api.middleware.tenant.log_tenant_config_issues") as mock_log:
        await _get(app, "/whoami", headers={"host": "a.example.com"})
        await _get(app, "/whoami", headers={"host": "b.example.com"})

    mock_log.assert_called_once()
    assert mock_log.call_args.kwargs["context"] == "tenant_middleware"


@pytest.mark.asyncio
async def test_tenant_context_is_reset_after_request(tenant_store, make_tenant, fake_clock):
    app = _make_app(_registry(tenant_store, make_tenant, fake_clock))

    await _get(app, "/whoami")

    with pytest.raises(RuntimeError):
        get_current_tenant()

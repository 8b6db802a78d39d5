"""FastAPI application factory.

Creates the app with tenant middleware, logging middleware, metrics middleware,
CORS, Sentry, lifespan events that build the tenant registry and page
resolver, and the API router.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response

from src.storefront.config import CacheBackend, Settings, get_settings
from src.storefront.core.cache import MemoryTTLCache, RedisTTLCache, TTLCache
from src.storefront.core.database import close_db, get_shared_session, get_tenant_session, init_db
from src.storefront.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.storefront.core.redis import close_redis, get_redis_pool
from src.storefront.api.middleware.tenant import TenantHostMiddleware
from src.storefront.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.storefront.api.routes.router import router as api_router
from src.storefront.pages.repository import PageVersionRepository
from src.storefront.pages.resolver import PageVersionResolver
from src.storefront.tenants.registry import TenantRegistry
from src.storefront.tenants.schemas import TenantConfig, build_tenant_from_settings
from src.storefront.tenants.store import AdminTokenStore, SqlTenantStore
from src.storefront.tenants.validation import log_tenant_config_issues


def build_tenant_cache(settings: Settings) -> TTLCache[TenantConfig]:
    """Tenant cache backend selected by TENANT_CACHE_BACKEND."""
    ttl = settings.TENANT_CACHE_TTL_SECONDS
    if settings.TENANT_CACHE_BACKEND == CacheBackend.redis:
        return RedisTTLCache(
            get_redis_pool(),
            default_ttl=ttl,
            encode=lambda tenant: tenant.model_dump(mode="json"),
            decode=TenantConfig.model_validate,
        )
    return MemoryTTLCache(default_ttl=ttl)


def build_tenant_registry(settings: Settings) -> TenantRegistry:
    default_tenant = build_tenant_from_settings(settings)
    log_tenant_config_issues(default_tenant, context="default_tenant")
    return TenantRegistry(
        store=SqlTenantStore(session_factory=get_shared_session, settings=settings),
        cache=build_tenant_cache(settings),
        default_tenant=default_tenant,
        mode=settings.TENANT_MODE,
        ttl_seconds=settings.TENANT_CACHE_TTL_SECONDS,
        lookup_timeout_seconds=settings.TENANT_LOOKUP_TIMEOUT_SECONDS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: init DB, Sentry and services on startup, close on shutdown."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()
    await init_db()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    # ── Tenant Resolution ───────────────────────────────────────────────
    try:
        registry = build_tenant_registry(settings)
        app.state.tenant_registry = registry
        app.state.admin_token_store = AdminTokenStore(session_factory=get_shared_session)
        log.info(
            "tenants.registry_initialized",
            mode=settings.TENANT_MODE.value,
            cache_backend=settings.TENANT_CACHE_BACKEND.value,
            default_tenant_id=registry.default_tenant.id,
        )
    except Exception:
        log.warning("tenants.registry_init_failed", exc_info=True)
        app.state.tenant_registry = None
        app.state.admin_token_store = None

    # ── Page Version Resolution ─────────────────────────────────────────
    try:
        repository = PageVersionRepository(session_factory=get_tenant_session)
        app.state.page_resolver = PageVersionResolver(
            repository=repository,
            lookup_timeout_seconds=settings.PAGE_STORE_TIMEOUT_SECONDS,
        )
        log.info("pages.resolver_initialized")
    except Exception:
        log.warning("pages.resolver_init_failed", exc_info=True)
        app.state.page_resolver = None

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Storefront Targeting API",
        version="0.1.0",
        description="Tenant resolution and targeted page version selection for storefronts",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # Tenant middleware (inner -- binds the tenant resolved from the hostname)
    app.add_middleware(TenantHostMiddleware)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(api_router)

    # Prometheus metrics endpoint (infrastructure route, outside the API router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()

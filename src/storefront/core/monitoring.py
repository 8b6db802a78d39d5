"""Prometheus metrics and Sentry integration.

Provides:
- MetricsMiddleware: ASGI middleware for HTTP request metrics
- Tenant cache and page resolution counters
- init_sentry(): Initialize Sentry with tenant-aware before_send callback
- get_metrics_response(): FastAPI route handler body for /metrics
"""

from __future__ import annotations

import time

from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ── HTTP Metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code", "tenant_id"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "tenant_id"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Resolution Metrics ───────────────────────────────────────────────────────

tenant_cache_lookups_total = Counter(
    "tenant_cache_lookups_total",
    "Tenant cache lookups by result",
    ["result"],
)

tenant_resolutions_total = Counter(
    "tenant_resolutions_total",
    "Tenant store resolutions by outcome",
    ["outcome"],
)

page_resolutions_total = Counter(
    "page_resolutions_total",
    "Page version resolutions by outcome",
    ["outcome"],
)


# ── Metrics Middleware ───────────────────────────────────────────────────────


class MetricsMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that records Prometheus metrics for every HTTP request.

    The tenant id label is read from request.state, where TenantHostMiddleware
    leaves it (the tenant contextvar is already reset by the time the
    response gets back out here). Skips the /metrics endpoint itself.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        # Route template keeps page slugs out of the label set
        route = request.scope.get("route")
        endpoint = getattr(route, "path", None) or request.url.path

        tenant_id = getattr(request.state, "tenant_id", None) or "unknown"

        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
            tenant_id=tenant_id,
        ).inc()

        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint,
            tenant_id=tenant_id,
        ).observe(duration)

        return response


# ── Sentry Integration ───────────────────────────────────────────────────────


def _tag_tenant(event: dict, hint: dict) -> dict:
    """Sentry before_send hook: tag events raised inside a tenant-scoped request."""
    from src.storefront.core.tenant import get_current_tenant

    try:
        tenant = get_current_tenant()
    except RuntimeError:
        return event
    tags = event.setdefault("tags", {})
    tags["tenant_id"] = tenant.id
    tags["project_code"] = tenant.project_code
    return event


def init_sentry(dsn: str, environment: str) -> None:
    """Initialize Sentry with the FastAPI integration and tenant tagging.

    Production samples 10% of traces, other environments all of them.
    """
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.starlette import StarletteIntegration

    traces_sample_rate = 0.1 if environment == "production" else 1.0

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=traces_sample_rate,
        integrations=[
            StarletteIntegration(),
            FastApiIntegration(),
        ],
        before_send=_tag_tenant,
    )


# ── Metrics Endpoint ─────────────────────────────────────────────────────────


def get_metrics_response() -> Response:
    """Generate Prometheus exposition format response."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )

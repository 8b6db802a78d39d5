"""Page version REST API endpoints.

Provides endpoints for:
- Resolving the version of a page to render for a request context
- Listing a page's versions with their publishing state
- Updating a version's publishing fields (status, targeting, priority, window)

All endpoints are tenant-scoped: versions are read from the schema of the
tenant bound by TenantHostMiddleware. Response bodies use camelCase keys.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from src.storefront.api.deps import get_page_resolver, get_tenant
from src.storefront.pages.context import (
    CAMPAIGN_PARAM_ALIASES,
    PAGE_CONTEXT_COOKIE,
    PAGE_CONTEXT_COOKIE_MAX_AGE,
    build_context_from_params,
    build_version_tags,
    device_from_user_agent,
    is_campaign_reset,
    merge_contexts,
    parse_context_cookie,
    serialize_context_cookie,
)
from src.storefront.pages.schemas import (
    ContextSource,
    PageVersion,
    PublishingUpdate,
    RequestContext,
    VersionTags,
)
from src.storefront.tenants.schemas import TenantConfig

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/pages", tags=["pages"])

NOT_FOUND_MESSAGE = "Page or version not found"

# Publish payload keys that carry flat targeting fields
TAG_PAYLOAD_KEYS = (
    "campaign",
    "segment",
    "attributes",
    "region",
    "language",
    "device",
    "addressStates",
)


# ── Response Schemas ─────────────────────────────────────────────────────────


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VersionSummary(_CamelModel):
    """Publishing state of one version (no content payload)."""

    version: int
    status: str
    priority: int = 0
    is_default: bool = False
    tags: dict[str, Any] | None = None
    active_from: datetime | None = None
    active_to: datetime | None = None
    comment: str | None = None
    created_at: datetime | None = None
    last_saved_at: datetime | None = None
    published_at: datetime | None = None
    blocks_count: int = 0


class ResolvedPage(_CamelModel):
    """The selected version with its content and how it was matched."""

    slug: str
    version: int
    status: str
    priority: int = 0
    is_default: bool = False
    tags: dict[str, Any] | None = None
    active_from: datetime | None = None
    active_to: datetime | None = None
    comment: str | None = None
    blocks: list[dict[str, Any]] = []
    seo: dict[str, Any] | None = None
    created_at: datetime | None = None
    last_saved_at: datetime | None = None
    published_at: datetime | None = None
    matched_by: str
    specificity: int = 0


class ResolveResponse(BaseModel):
    success: bool = True
    data: ResolvedPage


class VersionListResponse(BaseModel):
    slug: str
    versions: list[VersionSummary]


class PublishResponse(BaseModel):
    success: bool = True
    version: VersionSummary


# ── Conversion Helpers ───────────────────────────────────────────────────────


def _tags_payload(tags: VersionTags | None) -> dict[str, Any] | None:
    if tags is None or tags.is_empty():
        return None
    payload: dict[str, Any] = {}
    if tags.campaign:
        payload["campaign"] = tags.campaign
    if tags.segment:
        payload["segment"] = tags.segment
    attributes = tags.attributes.as_dict()
    if attributes:
        payload["attributes"] = attributes
    if tags.address_states:
        payload["addressStates"] = list(tags.address_states)
    return payload


def _version_summary(version: PageVersion) -> VersionSummary:
    """Convert PageVersion to VersionSummary."""
    return VersionSummary(
        version=version.version,
        status=version.status.value,
        priority=version.priority,
        is_default=version.is_default,
        tags=_tags_payload(version.tags),
        active_from=version.active_from,
        active_to=version.active_to,
        comment=version.comment,
        created_at=version.created_at,
        last_saved_at=version.last_saved_at,
        published_at=version.published_at,
        blocks_count=len(version.blocks),
    )


def _finite_number(value: Any) -> float | None:
    """Parse an int, float or numeric string; None unless finite."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _flag(value: Any) -> bool:
    return value is True or (isinstance(value, str) and value.lower() == "true")


async def _read_json_body(request: Request) -> dict[str, Any]:
    """JSON object body; an empty, malformed or non-object body reads as {}."""
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


# ── Publish Payload Parsing ──────────────────────────────────────────────────


class PublishPayloadError(ValueError):
    """A publish request body that cannot be applied."""


def parse_publish_payload(payload: dict[str, Any]) -> PublishingUpdate:
    """Translate a camelCase publish body into a PublishingUpdate.

    Only keys present in the body end up in model_fields_set, so absent keys
    leave the stored value alone while explicit nulls clear it.

    Raises:
        PublishPayloadError: With a field-specific message.
    """
    raw_version = payload.get("versionNumber")
    if raw_version is None or raw_version == "":
        raise PublishPayloadError("versionNumber is required")
    version_number = _finite_number(raw_version)
    if version_number is None or not version_number.is_integer():
        raise PublishPayloadError("versionNumber must be an integer")
    fields: dict[str, Any] = {"version_number": int(version_number)}

    if "priority" in payload:
        raw_priority = payload["priority"]
        if raw_priority is None:
            fields["priority"] = None
        else:
            priority = _finite_number(raw_priority)
            if priority is None or not priority.is_integer():
                raise PublishPayloadError("priority must be a number")
            fields["priority"] = int(priority)

    for key, field in (
        ("isDefault", "is_default"),
        ("activeFrom", "active_from"),
        ("activeTo", "active_to"),
        ("comment", "comment"),
        ("status", "status"),
    ):
        if key in payload:
            fields[field] = payload[key]

    if "tags" in payload:
        raw_tags = payload["tags"]
        if raw_tags is not None and not isinstance(raw_tags, dict):
            raise PublishPayloadError("tags must be an object")
        fields["tags"] = build_version_tags(raw_tags) if raw_tags else None
    elif any(key in payload for key in TAG_PAYLOAD_KEYS):
        fields["tags"] = build_version_tags(payload)

    try:
        return PublishingUpdate.model_validate(fields)
    except ValidationError as exc:
        error = exc.errors()[0]
        field = ".".join(to_camel(str(part)) for part in error["loc"])
        raise PublishPayloadError(f"{field}: {error['msg']}") from exc


# ── Resolution ───────────────────────────────────────────────────────────────


def _request_context(
    request: Request, params: dict[str, Any]
) -> tuple[RequestContext | None, RequestContext | None]:
    """Merged context for resolution, plus the context to persist (if any).

    Sources in increasing precedence: User-Agent device, campaign cookie,
    request parameters. ?campaign=reset drops the cookie context.
    """
    reset = is_campaign_reset(params)
    if reset:
        params = {k: v for k, v in params.items() if k not in CAMPAIGN_PARAM_ALIASES}
        cookie_context = None
    else:
        cookie_context = parse_context_cookie(request.cookies.get(PAGE_CONTEXT_COOKIE))

    param_context = build_context_from_params(params)

    device = device_from_user_agent(request.headers.get("user-agent"))
    agent_context = (
        RequestContext(attributes={"device": device}, source=ContextSource.DEFAULT)
        if device
        else None
    )

    context = merge_contexts([agent_context, cookie_context, param_context])

    persisted = None
    if param_context is not None and param_context.campaign:
        persisted = merge_contexts([cookie_context, param_context])
    return context, persisted


def _update_context_cookie(
    response: Response,
    slug: str,
    params: dict[str, Any],
    persisted: RequestContext | None,
) -> None:
    if is_campaign_reset(params):
        response.delete_cookie(PAGE_CONTEXT_COOKIE)
        return
    if persisted is None:
        return
    persisted = persisted.model_copy(
        update={
            "landing_page": slug,
            "landed_at": datetime.now(timezone.utc).isoformat(),
        }
    )
    response.set_cookie(
        PAGE_CONTEXT_COOKIE,
        serialize_context_cookie(persisted),
        max_age=PAGE_CONTEXT_COOKIE_MAX_AGE,
        httponly=True,
        samesite="lax",
    )


async def _resolve(
    request: Request,
    response: Response,
    slug: str,
    params: dict[str, Any],
    resolver: Any,
    tenant: TenantConfig,
) -> Any:
    context, persisted = _request_context(request, params)
    include_draft = _flag(params.get("preview")) or _flag(params.get("includeDraft"))

    resolution = await resolver.resolve_page_version(
        slug,
        tags=context,
        include_draft=include_draft,
        respect_active_window=True,
    )

    if resolution is None:
        logger.info("pages.resolve_not_found", slug=slug, tenant_id=tenant.id)
        not_found = JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"success": False, "error": NOT_FOUND_MESSAGE},
        )
        _update_context_cookie(not_found, slug, params, persisted)
        return not_found

    _update_context_cookie(response, slug, params, persisted)
    version = resolution.version
    return ResolveResponse(
        data=ResolvedPage(
            slug=version.slug,
            version=version.version,
            status=version.status.value,
            priority=version.priority,
            is_default=version.is_default,
            tags=_tags_payload(version.tags),
            active_from=version.active_from,
            active_to=version.active_to,
            comment=version.comment,
            blocks=version.blocks,
            seo=version.seo,
            created_at=version.created_at,
            last_saved_at=version.last_saved_at,
            published_at=version.published_at,
            matched_by=resolution.matched_by,
            specificity=resolution.specificity,
        )
    )


@router.get("/{slug}/resolve", response_model=ResolveResponse)
async def resolve_page_get(
    slug: str,
    request: Request,
    response: Response,
    tenant: TenantConfig = Depends(get_tenant),
) -> Any:
    """Resolve the version of a page for the context given as query parameters."""
    resolver = get_page_resolver(request)
    params = dict(request.query_params)
    return await _resolve(request, response, slug, params, resolver, tenant)


@router.post("/{slug}/resolve", response_model=ResolveResponse)
async def resolve_page_post(
    slug: str,
    request: Request,
    response: Response,
    tenant: TenantConfig = Depends(get_tenant),
) -> Any:
    """Resolve the version of a page for the context given as a JSON body."""
    resolver = get_page_resolver(request)
    params = await _read_json_body(request)
    return await _resolve(request, response, slug, params, resolver, tenant)


# ── Publishing ───────────────────────────────────────────────────────────────


@router.get("/{slug}/publish", response_model=VersionListResponse)
async def list_page_versions(
    slug: str,
    request: Request,
    tenant: TenantConfig = Depends(get_tenant),
) -> VersionListResponse:
    """List a page's versions with their publishing state."""
    resolver = get_page_resolver(request)
    versions = await resolver.list_versions(slug)
    return VersionListResponse(
        slug=slug,
        versions=[_version_summary(v) for v in versions],
    )


@router.post("/{slug}/publish", response_model=PublishResponse)
async def publish_page_version(
    slug: str,
    request: Request,
    tenant: TenantConfig = Depends(get_tenant),
) -> Any:
    """Apply publishing changes to an existing version."""
    resolver = get_page_resolver(request)
    payload = await _read_json_body(request)

    try:
        update = parse_publish_payload(payload)
    except PublishPayloadError as exc:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": str(exc)},
        )

    updated = await resolver.update_page_publishing(slug, update)
    if updated is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": "Version could not be updated"},
        )

    logger.info(
        "pages.publishing_updated",
        slug=slug,
        version=updated.version,
        status=updated.status.value,
        tenant_id=tenant.id,
    )
    return PublishResponse(version=_version_summary(updated))

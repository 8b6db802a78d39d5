"""Request context construction and merging.

A request's targeting context can come from several places: the campaign
cookie persisted from an earlier landing, the current URL's query
parameters, the visitor's user agent and the resolved delivery address.
merge_contexts() folds an ordered list of partial contexts into one, later
sources overwriting earlier ones field by field (attribute and utm dicts key
by key), so the precedence is simply the order of the arguments.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from functools import reduce
from typing import Any

from pydantic import ValidationError

from src.storefront.pages.schemas import (
    ATTRIBUTE_KEYS,
    ContextSource,
    RequestContext,
    VersionAttributes,
    VersionTags,
)

PAGE_CONTEXT_COOKIE = "storefront_campaign_context"
PAGE_CONTEXT_COOKIE_MAX_AGE = 60 * 60 * 24  # 24 hours (seconds)

# Query values of ?campaign= that drop the persisted campaign context
CAMPAIGN_RESET_VALUES = frozenset({"reset", "default", "none"})

# Query parameter names accepted as the campaign, in precedence order
CAMPAIGN_PARAM_ALIASES = ("campaign", "tag", "homeTag", "templateTag")

MOBILE_MARKERS = ("mobile", "iphone", "android")


def normalize_value(value: Any) -> str | None:
    """Trimmed string, or None for non-strings and blank strings."""
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def normalize_attributes(raw: Mapping[str, Any] | None) -> dict[str, str]:
    """Keep only recognised attribute keys with non-blank string values."""
    if not raw:
        return {}
    normalized: dict[str, str] = {}
    for key in ATTRIBUTE_KEYS:
        value = normalize_value(raw.get(key))
        if value:
            normalized[key] = value
    return normalized


def pick_campaign(params: Mapping[str, Any]) -> str | None:
    for alias in CAMPAIGN_PARAM_ALIASES:
        value = normalize_value(params.get(alias))
        if value:
            return value
    return None


def is_campaign_reset(params: Mapping[str, Any]) -> bool:
    campaign = pick_campaign(params)
    return campaign is not None and campaign.lower() in CAMPAIGN_RESET_VALUES


def device_from_user_agent(user_agent: str | None) -> str | None:
    """Coarse device class ("mobile" or "desktop") from a User-Agent header."""
    if not user_agent:
        return None
    lowered = user_agent.lower()
    return "mobile" if any(marker in lowered for marker in MOBILE_MARKERS) else "desktop"


def build_context_from_params(
    params: Mapping[str, Any],
    source: ContextSource = ContextSource.URL,
) -> RequestContext | None:
    """Build a context from query/body parameters, or None if they carry no targeting.

    Attributes may be given flat (region=, language=, device=) or nested under
    "attributes"; flat values win.
    """
    nested = params.get("attributes")
    attributes = normalize_attributes(nested if isinstance(nested, Mapping) else None)
    attributes.update(normalize_attributes(params))

    context = RequestContext(
        campaign=pick_campaign(params),
        segment=normalize_value(params.get("segment")),
        attributes=attributes,
        address_state=normalize_value(params.get("addressState") or params.get("address_state")),
        source=source,
    )
    return context if context.has_data() else None


def build_version_tags(params: Mapping[str, Any]) -> VersionTags | None:
    """Build version targeting from a publish payload, or None if it sets nothing.

    Accepts the same flat/nested attribute forms as build_context_from_params;
    geo targeting is given as addressStates (list or comma-separated string).
    """
    nested = params.get("attributes")
    attributes = normalize_attributes(nested if isinstance(nested, Mapping) else None)
    attributes.update(normalize_attributes(params))

    raw_states = params.get("addressStates", params.get("address_states"))
    if isinstance(raw_states, str):
        raw_states = raw_states.split(",")
    if not isinstance(raw_states, (list, tuple)):
        raw_states = []
    states = [state.upper() for state in map(normalize_value, raw_states) if state]

    tags = VersionTags(
        campaign=normalize_value(params.get("campaign")),
        segment=normalize_value(params.get("segment")),
        attributes=VersionAttributes(**attributes),
        address_states=states,
    )
    return None if tags.is_empty() else tags


def parse_context_cookie(value: str | None) -> RequestContext | None:
    """Decode the persisted campaign cookie; malformed or empty cookies yield None."""
    if not value:
        return None
    try:
        data = json.loads(value)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    utm = data.get("utm")
    try:
        context = RequestContext(
            campaign=normalize_value(data.get("campaign")),
            segment=normalize_value(data.get("segment")),
            attributes=normalize_attributes(data.get("attributes")),
            address_state=normalize_value(data.get("address_state")),
            source=data.get("source") or ContextSource.COOKIE,
            landing_page=data.get("landing_page"),
            landed_at=data.get("landed_at"),
            utm={k: v for k, v in utm.items() if isinstance(v, str)} if isinstance(utm, dict) else {},
        )
    except ValidationError:
        return None
    return context if context.has_data() else None


def serialize_context_cookie(context: RequestContext) -> str:
    return context.model_dump_json(exclude_none=True)


def _merge_pair(base: RequestContext, overlay: RequestContext | None) -> RequestContext:
    if overlay is None:
        return base
    updates: dict[str, Any] = {
        name: value
        for name in ("campaign", "segment", "address_state", "source", "landing_page", "landed_at")
        if (value := getattr(overlay, name))
    }
    updates["attributes"] = {**base.attributes, **overlay.attributes}
    updates["utm"] = {**base.utm, **overlay.utm}
    return base.model_copy(update=updates)


def merge_contexts(contexts: Iterable[RequestContext | None]) -> RequestContext | None:
    """Fold contexts left to right; later non-empty fields overwrite earlier ones.

    Returns None when the merged context carries no targeting data.
    """
    merged = reduce(_merge_pair, contexts, RequestContext())
    return merged if merged.has_data() else None

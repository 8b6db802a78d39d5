"""Tag matching between a page version's targeting and a request context.

Every targeting dimension a version sets is an exclusionary filter: if the
request does not carry the same value, the version is disqualified. Unset
dimensions are wildcards. A surviving version's specificity is the number of
set dimensions it matched, so a version targeting {campaign, region} beats
one targeting {campaign} for a request that carries both.

Dimensions: campaign, segment, each of the region/language/device
attributes, and the delivery address state.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from src.storefront.pages.schemas import ATTRIBUTE_KEYS, RequestContext, VersionTags


@dataclass(frozen=True)
class TagMatch:
    """Outcome of matching one version against a request context."""

    specificity: int
    dimensions: tuple[str, ...] = field(default_factory=tuple)

    @property
    def matched_by(self) -> str | None:
        return "+".join(self.dimensions) if self.dimensions else None


class TagMatcher:
    """Scores version tags against a request context."""

    def match(self, tags: VersionTags | None, context: RequestContext | None) -> TagMatch | None:
        """Return the match, or None when any set dimension disagrees."""
        if tags is None:
            return TagMatch(specificity=0)
        context = context or RequestContext()
        dimensions: list[str] = []

        for name in ("campaign", "segment"):
            wanted = _clean(getattr(tags, name))
            if wanted is None:
                continue
            if _clean(getattr(context, name)) != wanted:
                return None
            dimensions.append(name)

        version_attributes = tags.attributes.as_dict()
        for key in ATTRIBUTE_KEYS:
            wanted = _clean(version_attributes.get(key))
            if wanted is None:
                continue
            if _clean(context.attributes.get(key)) != wanted:
                return None
            dimensions.append(key)

        states = {s.strip().upper() for s in tags.address_states if s and s.strip()}
        if states:
            request_state = _clean(context.address_state)
            if request_state is None or request_state.upper() not in states:
                return None
            dimensions.append("addressState")

        return TagMatch(specificity=len(dimensions), dimensions=tuple(dimensions))


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None

"""Tag matcher tests: exclusionary dimensions and specificity scoring."""

from __future__ import annotations

from src.storefront.pages.matcher import TagMatcher
from src.storefront.pages.schemas import RequestContext, VersionTags

matcher = TagMatcher()


def _tags(**data) -> VersionTags:
    return VersionTags.model_validate(data)


def test_no_tags_matches_anything_with_zero_specificity():
    match = matcher.match(None, RequestContext(campaign="summer"))
    assert match.specificity == 0
    assert match.matched_by is None


def test_empty_tags_match_empty_context():
    match = matcher.match(_tags(), None)
    assert match.specificity == 0


def test_campaign_must_match_exactly():
    tags = _tags(campaign="summer")
    assert matcher.match(tags, RequestContext(campaign="summer")).specificity == 1
    assert matcher.match(tags, RequestContext(campaign="winter")) is None
    assert matcher.match(tags, RequestContext(campaign="Summer")) is None


def test_campaign_compared_after_trim():
    match = matcher.match(_tags(campaign=" summer "), RequestContext(campaign="summer  "))
    assert match is not None


def test_set_campaign_requires_request_campaign():
    assert matcher.match(_tags(campaign="summer"), RequestContext()) is None
    assert matcher.match(_tags(campaign="summer"), None) is None


def test_segment_is_exclusionary():
    tags = _tags(segment="vip")
    assert matcher.match(tags, RequestContext(segment="vip")).specificity == 1
    assert matcher.match(tags, RequestContext(segment="retail")) is None


def test_each_attribute_counts_once():
    tags = _tags(attributes={"region": "eu", "device": "mobile"})
    context = RequestContext(attributes={"region": "eu", "device": "mobile", "language": "it"})

    match = matcher.match(tags, context)

    assert match.specificity == 2
    assert match.dimensions == ("region", "device")


def test_attribute_mismatch_disqualifies():
    tags = _tags(attributes={"region": "eu", "device": "mobile"})
    assert matcher.match(tags, RequestContext(attributes={"region": "eu", "device": "desktop"})) is None
    assert matcher.match(tags, RequestContext(attributes={"region": "eu"})) is None


def test_unset_attributes_are_wildcards():
    match = matcher.match(_tags(attributes={"language": "it"}), RequestContext(attributes={"language": "it", "region": "eu"}))
    assert match.specificity == 1


def test_address_state_case_insensitive_membership():
    tags = _tags(address_states=["CA", "ny"])
    assert matcher.match(tags, RequestContext(address_state="ca")).specificity == 1
    assert matcher.match(tags, RequestContext(address_state="NY")).specificity == 1
    assert matcher.match(tags, RequestContext(address_state="TX")) is None
    assert matcher.match(tags, RequestContext()) is None


def test_full_specificity_and_matched_by():
    tags = _tags(
        campaign="summer",
        segment="vip",
        attributes={"region": "eu", "language": "it", "device": "mobile"},
        address_states=["CA"],
    )
    context = RequestContext(
        campaign="summer",
        segment="vip",
        attributes={"region": "eu", "language": "it", "device": "mobile"},
        address_state="CA",
    )

    match = matcher.match(tags, context)

    assert match.specificity == 6
    assert match.matched_by == "campaign+segment+region+language+device+addressState"

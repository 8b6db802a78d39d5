"""Tenant configuration tests: defaults from settings, validation, conversions."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import patch

from src.storefront.config import Environment, Settings, TenantMode
from src.storefront.tenants.schemas import (
    IssueSeverity,
    TenantApiConfig,
    build_tenant_from_settings,
    default_database_name,
    to_public_info,
)
from src.storefront.tenants.store import _model_to_config
from src.storefront.tenants.validation import (
    has_critical_errors,
    log_tenant_config_issues,
    validate_tenant_config,
)


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


# ── Settings ─────────────────────────────────────────────────────────────────


def test_settings_defaults():
    settings = _settings()
    assert settings.TENANT_MODE == TenantMode.single
    assert settings.TENANT_CACHE_TTL_SECONDS == 300


def test_admin_auth_disabled_only_in_development():
    assert _settings(ENVIRONMENT=Environment.development).admin_auth_disabled is True
    assert _settings(ENVIRONMENT=Environment.production).admin_auth_disabled is False


# ── Default Tenant ───────────────────────────────────────────────────────────


def test_build_tenant_from_settings():
    settings = _settings(
        DEFAULT_TENANT_ID="acme-eu",
        PROJECT_CODE="acme",
        PIM_API_URL="https://pim.acme.test",
        API_KEY_ID="kid",
        API_SECRET="s3cret",
        BUILDER_URL="https://builder.acme.test",
    )

    tenant = build_tenant_from_settings(settings)

    assert tenant.id == "acme-eu"
    assert tenant.project_code == "acme"
    assert tenant.api.pim_api_url == "https://pim.acme.test"
    assert tenant.database.name == "tenant_acme_eu"
    assert tenant.builder_url == "https://builder.acme.test"


def test_build_tenant_project_code_fallback():
    tenant = build_tenant_from_settings(_settings(DEFAULT_TENANT_ID="acme", PROJECT_CODE=""))
    assert tenant.project_code == "storefront-acme"


def test_default_database_name():
    assert default_database_name("big-shop") == "tenant_big_shop"


def test_model_to_config_fills_environment_defaults():
    settings = _settings(PIM_API_URL="https://pim.default.test", B2B_API_URL="https://b2b.default.test")
    model = SimpleNamespace(
        id="acme",
        name=None,
        project_code="acme-shop",
        status="active",
        pim_api_url=None,
        b2b_api_url="https://b2b.acme.test",
        api_key_id=None,
        api_secret=None,
        database_url=None,
        database_name=None,
        require_login=None,
        home_settings_customer_id="c-1",
        builder_url=None,
        created_at=None,
        updated_at=None,
        domains=[SimpleNamespace(hostname="shop.acme.test", is_primary=True, is_active=None)],
    )

    tenant = _model_to_config(model, settings)

    assert tenant.name == "acme"
    assert tenant.api.pim_api_url == "https://pim.default.test"
    assert tenant.api.b2b_api_url == "https://b2b.acme.test"
    assert tenant.database.name == "tenant_acme"
    assert tenant.require_login is False
    assert tenant.domains[0].hostname == "shop.acme.test"


# ── Conversions ──────────────────────────────────────────────────────────────


def test_public_info_has_no_credentials(make_tenant):
    info = to_public_info(make_tenant("acme"))
    dumped = info.model_dump()
    assert dumped["id"] == "acme"
    assert "api_secret" not in dumped
    assert "api" not in dumped


def test_public_info_flags_config_error(make_tenant):
    assert to_public_info(make_tenant("acme")).config_error is False
    assert to_public_info(make_tenant("acme"), config_error=True).config_error is True


# ── Validation ───────────────────────────────────────────────────────────────


def test_valid_tenant_has_no_issues(make_tenant):
    assert validate_tenant_config(make_tenant("acme")) == []


def test_missing_urls_are_errors(make_tenant):
    tenant = make_tenant("acme", api=TenantApiConfig(api_key_id="k", api_secret="s"))

    issues = validate_tenant_config(tenant)

    fields = {i.field: i.severity for i in issues}
    assert fields == {
        "api.pim_api_url": IssueSeverity.ERROR,
        "api.b2b_api_url": IssueSeverity.ERROR,
    }
    assert has_critical_errors(tenant) is True


def test_missing_credentials_are_warnings(make_tenant):
    tenant = make_tenant(
        "acme",
        api=TenantApiConfig(pim_api_url="https://pim", b2b_api_url="https://b2b"),
    )

    issues = validate_tenant_config(tenant)

    assert {i.severity for i in issues} == {IssueSeverity.WARNING}
    assert has_critical_errors(tenant) is False


def test_log_tenant_config_issues(make_tenant):
    tenant = make_tenant("acme", project_code="", api=TenantApiConfig())

    with patch("src.storefront.tenants.validation.logger") as mock_logger:
        log_tenant_config_issues(tenant, context="startup")

    assert mock_logger.error.call_count == 3
    assert mock_logger.warning.call_count == 2
    assert mock_logger.error.call_args_list[0].args[0] == "startup.issue"

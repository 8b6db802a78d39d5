"""Pydantic schemas for tenant configuration.

TenantConfig is the resolved, read-only view of a tenant used by every
downstream API call. TenantPublicInfo is the subset exposed to clients.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.storefront.config import Settings


class TenantDomain(BaseModel):
    """A hostname claimed by a tenant (stored lower-case)."""

    model_config = ConfigDict(from_attributes=True)

    hostname: str
    is_primary: bool | None = None
    is_active: bool | None = None


class TenantApiConfig(BaseModel):
    """Backend base URLs and credential pair for a tenant."""

    model_config = ConfigDict(from_attributes=True)

    pim_api_url: str = ""
    b2b_api_url: str = ""
    api_key_id: str = ""
    api_secret: str = ""


class TenantDatabaseConfig(BaseModel):
    """Connection locator and logical database (schema) name for a tenant."""

    model_config = ConfigDict(from_attributes=True)

    url: str = ""
    name: str


class TenantConfig(BaseModel):
    """Full tenant configuration as resolved from the tenant registry."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    project_code: str
    domains: list[TenantDomain] = Field(default_factory=list)
    api: TenantApiConfig = Field(default_factory=TenantApiConfig)
    database: TenantDatabaseConfig
    require_login: bool = False
    home_settings_customer_id: str | None = None
    builder_url: str | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TenantPublicInfo(BaseModel):
    """Tenant info safe to expose to the browser (no credentials)."""

    id: str
    name: str
    project_code: str
    require_login: bool = False
    builder_url: str | None = None
    config_error: bool = False


class IssueSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class TenantConfigIssue(BaseModel):
    """A missing or suspicious field in a tenant configuration."""

    field: str
    message: str
    severity: IssueSeverity


# ── Conversions ─────────────────────────────────────────────────────────────


def default_database_name(tenant_id: str) -> str:
    """Schema name used when a tenant does not configure one."""
    return f"tenant_{tenant_id.replace('-', '_')}"


def build_tenant_from_settings(settings: Settings) -> TenantConfig:
    """Build the environment-level default tenant.

    Used as the only tenant in single-tenant mode and as the fail-open
    fallback when multi-tenant resolution finds nothing.
    """
    tenant_id = settings.DEFAULT_TENANT_ID
    return TenantConfig(
        id=tenant_id,
        name=tenant_id,
        project_code=settings.PROJECT_CODE or f"storefront-{tenant_id}",
        domains=[],
        api=TenantApiConfig(
            pim_api_url=settings.PIM_API_URL,
            b2b_api_url=settings.B2B_API_URL,
            api_key_id=settings.API_KEY_ID,
            api_secret=settings.API_SECRET,
        ),
        database=TenantDatabaseConfig(
            url=settings.TENANT_DATABASE_URL,
            name=settings.TENANT_DATABASE_NAME or default_database_name(tenant_id),
        ),
        require_login=settings.REQUIRE_LOGIN,
        home_settings_customer_id=settings.HOME_SETTINGS_CUSTOMER_ID,
        builder_url=settings.BUILDER_URL or None,
        is_active=True,
    )


def to_public_info(tenant: TenantConfig, config_error: bool = False) -> TenantPublicInfo:
    return TenantPublicInfo(
        id=tenant.id,
        name=tenant.name,
        project_code=tenant.project_code,
        require_login=tenant.require_login,
        builder_url=tenant.builder_url,
        config_error=config_error,
    )

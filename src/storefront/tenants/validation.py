"""Tenant configuration sanity checks."""

from __future__ import annotations

import structlog

from src.storefront.tenants.schemas import IssueSeverity, TenantConfig, TenantConfigIssue

logger = structlog.get_logger(__name__)


def validate_tenant_config(tenant: TenantConfig) -> list[TenantConfigIssue]:
    """List missing required fields (errors) and missing credentials (warnings)."""
    issues: list[TenantConfigIssue] = []

    def add(field: str, message: str, severity: IssueSeverity) -> None:
        issues.append(TenantConfigIssue(field=field, message=message, severity=severity))

    if not tenant.id:
        add("id", "Tenant ID is missing", IssueSeverity.ERROR)
    if not tenant.project_code:
        add("project_code", "Project code is missing", IssueSeverity.ERROR)
    if not tenant.api.pim_api_url:
        add("api.pim_api_url", "PIM API URL is missing", IssueSeverity.ERROR)
    if not tenant.api.b2b_api_url:
        add("api.b2b_api_url", "B2B API URL is missing", IssueSeverity.ERROR)

    if not tenant.api.api_key_id:
        add("api.api_key_id", "API key ID is not configured", IssueSeverity.WARNING)
    if not tenant.api.api_secret:
        add("api.api_secret", "API secret is not configured", IssueSeverity.WARNING)

    return issues


def has_critical_errors(tenant: TenantConfig) -> bool:
    return any(i.severity == IssueSeverity.ERROR for i in validate_tenant_config(tenant))


def log_tenant_config_issues(tenant: TenantConfig, context: str = "tenant_config") -> None:
    for issue in validate_tenant_config(tenant):
        log = logger.error if issue.severity == IssueSeverity.ERROR else logger.warning
        log(
            f"{context}.issue",
            tenant_id=tenant.id,
            field=issue.field,
            message=issue.message,
        )

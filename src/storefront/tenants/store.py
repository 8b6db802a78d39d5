"""Tenant registry and admin token stores backed by the shared schema.

TenantStore is the read-only datastore boundary of the tenant registry:
"find the active tenants owning any of these hostname keys" plus the
subdomain fallback lookup by tenant id. Both use the session_factory
callable pattern so tests can swap in an in-memory double.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone
from typing import Protocol

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.storefront.config import Settings
from src.storefront.core.security import verify_token_hash
from src.storefront.tenants.models import AdminTokenModel, TenantDomainModel, TenantModel
from src.storefront.tenants.schemas import (
    TenantApiConfig,
    TenantConfig,
    TenantDatabaseConfig,
    TenantDomain,
    default_database_name,
)

logger = structlog.get_logger(__name__)

ACTIVE_STATUS = "active"


class TenantStore(Protocol):
    """Datastore boundary consumed by TenantRegistry."""

    async def find_active_by_hostnames(self, hostnames: list[str], limit: int = 2) -> list[TenantConfig]: ...

    async def get_active_by_id(self, tenant_id: str) -> TenantConfig | None: ...


def _model_to_config(model: TenantModel, settings: Settings) -> TenantConfig:
    """Convert a TenantModel row to TenantConfig, filling environment defaults."""
    return TenantConfig(
        id=model.id,
        name=model.name or model.id,
        project_code=model.project_code,
        domains=[
            TenantDomain(
                hostname=d.hostname,
                is_primary=d.is_primary,
                is_active=d.is_active,
            )
            for d in model.domains
        ],
        api=TenantApiConfig(
            pim_api_url=model.pim_api_url or settings.PIM_API_URL,
            b2b_api_url=model.b2b_api_url or settings.B2B_API_URL,
            api_key_id=model.api_key_id or "",
            api_secret=model.api_secret or "",
        ),
        database=TenantDatabaseConfig(
            url=model.database_url or settings.TENANT_DATABASE_URL,
            name=model.database_name or default_database_name(model.id),
        ),
        require_login=bool(model.require_login),
        home_settings_customer_id=model.home_settings_customer_id,
        builder_url=model.builder_url,
        is_active=model.status == ACTIVE_STATUS,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


class SqlTenantStore:
    """TenantStore reading shared.tenants / shared.tenant_domains.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
        settings: Used for default API URLs and database locator.
    """

    def __init__(
        self,
        session_factory: Callable[..., AsyncGenerator[AsyncSession, None]],
        settings: Settings,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings

    async def find_active_by_hostnames(self, hostnames: list[str], limit: int = 2) -> list[TenantConfig]:
        """Active tenants with an active domain whose hostname is in the key set.

        The matching domain row itself must not be disabled; a NULL is_active
        counts as active. Results are ordered oldest tenant first so the
        "first wins" choice for ambiguous data is stable.
        """
        owning_tenants = select(TenantDomainModel.tenant_id).where(
            TenantDomainModel.hostname.in_(hostnames),
            TenantDomainModel.is_active.is_not(False),
        )
        stmt = (
            select(TenantModel)
            .where(
                TenantModel.id.in_(owning_tenants),
                TenantModel.status == ACTIVE_STATUS,
            )
            .order_by(TenantModel.created_at, TenantModel.id)
            .limit(limit)
        )
        async for session in self._session_factory():
            result = await session.execute(stmt)
            return [_model_to_config(m, self._settings) for m in result.scalars().all()]
        return []

    async def get_active_by_id(self, tenant_id: str) -> TenantConfig | None:
        stmt = select(TenantModel).where(
            TenantModel.id == tenant_id,
            TenantModel.status == ACTIVE_STATUS,
        )
        async for session in self._session_factory():
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            return _model_to_config(model, self._settings) if model else None
        return None


class AdminTokenStore:
    """Validates administrative tokens against shared.admin_tokens."""

    def __init__(self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]) -> None:
        self._session_factory = session_factory

    async def is_valid(self, token: str) -> bool:
        """True if the token matches an active, non-expired admin token.

        Store failures count as invalid.
        """
        if not token:
            return False

        now = datetime.now(timezone.utc)
        stmt = select(AdminTokenModel).where(
            AdminTokenModel.is_active.is_not(False),
            or_(AdminTokenModel.expires_at.is_(None), AdminTokenModel.expires_at > now),
        )
        try:
            async for session in self._session_factory():
                result = await session.execute(stmt)
                for row in result.scalars().all():
                    if verify_token_hash(token, row.token_hash):
                        await session.execute(
                            update(AdminTokenModel)
                            .where(AdminTokenModel.id == row.id)
                            .values(last_used_at=now)
                        )
                        await session.commit()
                        return True
        except Exception:
            logger.error("admin_token.validation_failed", exc_info=True)
            return False
        return False

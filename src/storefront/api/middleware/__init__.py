"""API middleware package."""

from src.storefront.api.middleware.logging import LoggingMiddleware
from src.storefront.api.middleware.tenant import TenantHostMiddleware

__all__ = ["LoggingMiddleware", "TenantHostMiddleware"]

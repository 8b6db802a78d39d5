"""Tenant registry -- hostname to tenant configuration resolution.

Provides SQLAlchemy models for tenants, their domains and admin tokens,
TenantConfig schemas, the SqlTenantStore lookup, and TenantRegistry which
caches hostname resolutions with a TTL.
"""

"""API router -- aggregates all endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from src.storefront.api.routes import admin, health, pages, tenant

router = APIRouter()

router.include_router(health.router)
router.include_router(tenant.router)
router.include_router(pages.router)
router.include_router(admin.router)

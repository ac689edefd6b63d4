"""Aggregate the API routers."""

from fastapi import APIRouter
from reportgen.api.v1.health import router as health_router
from reportgen.api.v1.reports import router as reports_router


def build_api_router(prefix: str) -> APIRouter:
    """Report endpoints mounted under the configured prefix (e.g. /api)."""
    api_router = APIRouter(prefix=prefix)
    api_router.include_router(reports_router, tags=["reports"])
    return api_router


# GET /health at root
health_root_router = APIRouter()
health_root_router.include_router(health_router, tags=["health"])

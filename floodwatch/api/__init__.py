"""
API package for the Floodwatch backend.

This package aggregates all API routers to be included in the FastAPI
application. The API is versioned under ``/api/v1``.
"""

from fastapi import APIRouter

from .v1.admin import router as admin_router
from .v1.health import router as health_router
from .v1.reports import router as reports_router

api_router = APIRouter()
api_router.include_router(reports_router)
api_router.include_router(admin_router)
api_router.include_router(health_router)

"""API v1 router - includes all v1 endpoints."""

from fastapi import APIRouter

from quizsync.api.v1.endpoints import health, sync_progress

api_router = APIRouter()

api_router.include_router(health.router, prefix="", tags=["Health"])
api_router.include_router(sync_progress.router, tags=["Progress Sync"])

"""
Главный API роутер, объединяющий все endpoints.
"""
from fastapi import APIRouter

from media_cleanup.api.v1.endpoints import cleanup, health

# Health checks (без префикса /api)
root_router = APIRouter()

root_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"],
)

# API v1
api_router = APIRouter(prefix="/api/v1")

api_router.include_router(cleanup.router)

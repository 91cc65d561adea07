"""
API router aggregation.
"""

from fastapi import APIRouter

from app.api.routes import credentials, health, sync

# Create main API router
api_router = APIRouter()

# Include all route modules
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(sync.router, prefix="/sync", tags=["sync"])
api_router.include_router(
    credentials.router, prefix="/credentials", tags=["credentials"]
)

__all__ = ["api_router"]

"""
Dependency injection functions for FastAPI.
"""

from collections.abc import AsyncGenerator
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.database import AsyncSessionLocal
from app.core.exceptions import AuthenticationError
from app.core.security import get_owner_id
from app.services.sync_job_service import SyncJobService, sync_job_service

__all__ = [
    "get_db",
    "get_settings",
    "get_current_owner",
    "get_sync_job_service",
    "Settings",
]

# Security scheme
security = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Get database session.

    Yields:
        AsyncSession: Database session
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_current_owner(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Resolve the caller's owner id from the bearer token.

    Raises:
        AuthenticationError: Missing, invalid or expired token
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication required")

    owner_id = get_owner_id(credentials.credentials)
    if owner_id is None:
        raise AuthenticationError("Invalid or expired token")
    request.state.owner_id = owner_id
    return owner_id


def get_sync_job_service() -> SyncJobService:
    """Get the sync job service instance."""
    return sync_job_service

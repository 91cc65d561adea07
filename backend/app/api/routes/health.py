"""
Health check endpoints.
"""

from typing import Any, Dict, Union

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.schemas import HealthResponse
from app.core.dependencies import get_db

router = APIRouter()


@router.get("", response_model=HealthResponse)
async def health_check() -> Dict[str, str]:
    """
    Basic health check endpoint.

    Returns:
        Dict with health status
    """
    return {"status": "healthy"}


@router.get("/ready", response_model=Dict[str, Any])
async def readiness_check(
    db: AsyncSession = Depends(get_db),
) -> Union[Dict[str, Any], JSONResponse]:
    """
    Readiness check: the database answers a trivial query.

    Returns:
        Readiness status, 503 when the database is unreachable
    """
    try:
        result = await db.execute(text("SELECT 1"))
        result.fetchone()
        database = {"status": "ready", "error": None}
    except Exception as e:
        database = {"status": "not ready", "error": str(e)}

    body = {
        "status": "ready" if database["status"] == "ready" else "not ready",
        "checks": {"database": database},
    }
    if database["status"] != "ready":
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body
        )
    return body

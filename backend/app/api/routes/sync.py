"""
Sync job endpoints.

Static paths are declared before ``/{job_id}`` so they are not captured by it.
"""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.schemas import (
    CancelSyncResponse,
    ErrorResponse,
    PurgeHistoryResponse,
    ResetSyncResponse,
    StartSyncRequest,
    StartSyncResponse,
    SyncJobResponse,
)
from app.core.dependencies import get_current_owner, get_db, get_sync_job_service
from app.services.sync_job_service import SyncJobService

router = APIRouter()


@router.post(
    "/start",
    response_model=StartSyncResponse,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def start_sync(
    http_request: Request,
    request: Optional[StartSyncRequest] = Body(None),
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    service: SyncJobService = Depends(get_sync_job_service),
) -> StartSyncResponse:
    """
    Start a sync job.

    The job is queued for background execution; poll ``GET /sync/{job_id}``
    for progress.

    Args:
        http_request: Incoming request
        request: Sync type and optional batching overrides
        owner_id: Authenticated caller
        db: Database session
        service: Sync job service

    Returns:
        ID of the queued job
    """
    request = request or StartSyncRequest()
    job = await service.start_sync(
        owner_id,
        request.type,
        db,
        parallel=request.parallel,
        batch_size=request.batch_size,
        max_concurrent=request.max_concurrent,
    )
    http_request.state.sync_id = job.id
    return StartSyncResponse(
        success=True,
        job_id=job.id,  # type: ignore[arg-type]
        message=f"{str(job.type).capitalize()} sync started",
    )


@router.get("/active", response_model=List[SyncJobResponse])
async def list_active_syncs(
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    service: SyncJobService = Depends(get_sync_job_service),
) -> List[SyncJobResponse]:
    """List the caller's pending and running sync jobs."""
    jobs = await service.list_active(owner_id, db)
    return [SyncJobResponse.model_validate(job.to_dict()) for job in jobs]


@router.get("/history", response_model=List[SyncJobResponse])
async def get_sync_history(
    limit: int = Query(20, ge=1, le=200, description="Number of jobs to return"),
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    service: SyncJobService = Depends(get_sync_job_service),
) -> List[SyncJobResponse]:
    """List the caller's most recent sync jobs, newest first."""
    jobs = await service.list_history(owner_id, db, limit=limit)
    return [SyncJobResponse.model_validate(job.to_dict()) for job in jobs]


@router.delete("/history", response_model=PurgeHistoryResponse)
async def purge_sync_history(
    force: bool = Query(False, description="Purge even while syncs are active"),
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    service: SyncJobService = Depends(get_sync_job_service),
) -> PurgeHistoryResponse:
    """
    Delete the caller's finished sync jobs.

    Active jobs are never deleted. Without ``force`` the request is refused
    with 409 while any job is active.
    """
    result = await service.purge_history(owner_id, db, force=force)
    return PurgeHistoryResponse(**result)


@router.post("/reset", response_model=ResetSyncResponse)
async def reset_syncs(
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    service: SyncJobService = Depends(get_sync_job_service),
) -> ResetSyncResponse:
    """Cancel every active sync job of the caller."""
    result = await service.reset(owner_id, db)
    return ResetSyncResponse(**result)


@router.get("/{job_id}", response_model=SyncJobResponse)
async def get_sync_job(
    job_id: str,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    service: SyncJobService = Depends(get_sync_job_service),
) -> SyncJobResponse:
    """
    Get sync job details.

    Args:
        job_id: Sync job ID
        owner_id: Authenticated caller
        db: Database session
        service: Sync job service

    Returns:
        The full job row with progress
    """
    job = await service.get_job(job_id, owner_id, db)
    return SyncJobResponse.model_validate(job.to_dict())


@router.post("/{job_id}/cancel", response_model=CancelSyncResponse)
async def cancel_sync_job(
    job_id: str,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
    service: SyncJobService = Depends(get_sync_job_service),
) -> CancelSyncResponse:
    """
    Cancel a sync job and its continuation jobs.

    Jobs that already finished are reported as such and left untouched.
    """
    result = await service.cancel_job(job_id, owner_id, db)
    return CancelSyncResponse(**result)

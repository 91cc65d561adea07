"""
Pydantic schemas for API requests and responses.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=True,
    )


# Common response schemas
class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Health status")


class ErrorDetail(BaseModel):
    """Error detail information."""

    message: str = Field(..., description="Error message")
    error_code: str = Field(..., description="Machine readable error code")
    details: Optional[dict[str, Any]] = Field(None, description="Extra context")
    request_id: Optional[str] = Field(None, description="Request ID for tracking")


class ErrorResponse(BaseModel):
    """Standard error response."""

    success: bool = Field(False, description="Success status")
    error: ErrorDetail


# Sync schemas
class StartSyncRequest(BaseModel):
    """Request body for starting a sync."""

    # Left optional so a missing type is reported as invalid input
    type: Optional[str] = Field(
        None, description="Entity type: company, employee or absenteeism"
    )
    parallel: Optional[bool] = Field(
        None, description="Process large record sets in parallel batches"
    )
    batch_size: Optional[int] = Field(
        None, ge=1, le=10000, description="Records per batch"
    )
    max_concurrent: Optional[int] = Field(
        None, ge=1, le=50, description="Batches processed at once"
    )


class StartSyncResponse(BaseModel):
    """Response returned once a sync job is queued."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = Field(True, description="Success status")
    job_id: int = Field(..., serialization_alias="jobId", description="Sync job ID")
    message: str = Field(..., description="Human readable status")


class SyncJobResponse(BaseSchema):
    """Sync job details."""

    id: int
    type: str
    status: str
    owner_id: str
    total_records: Optional[int] = None
    processed_records: int = 0
    batch: Optional[int] = None
    total_batches: Optional[int] = None
    message: Optional[str] = None
    error_details: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    parent_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    progress: int = Field(0, description="Progress percentage (0-100)")
    duration_seconds: Optional[float] = None


class CancelSyncResponse(BaseModel):
    """Result of a cancel request."""

    success: bool = True
    message: str
    cancelled_ids: List[int] = Field(default_factory=list)


class PurgeHistoryResponse(BaseModel):
    """Result of purging finished sync jobs."""

    success: bool = True
    deleted: int = Field(..., description="Number of jobs deleted")
    active_preserved: int = Field(..., description="Active jobs left untouched")


class ResetSyncResponse(BaseModel):
    """Result of cancelling every active sync."""

    success: bool = True
    cancelled_ids: List[int] = Field(default_factory=list)


# Credential schemas
class CredentialUpdate(BaseModel):
    """SOC credentials for one export type."""

    empresa: str = Field(..., min_length=1, description="SOC company code")
    codigo: str = Field(..., min_length=1, description="Export code")
    chave: str = Field(..., min_length=1, description="Export access key")
    ativo: Optional[str] = None
    inativo: Optional[str] = None
    afastado: Optional[str] = None
    pendente: Optional[str] = None
    ferias: Optional[str] = None
    empresatrabalho: Optional[str] = None
    datainicio: Optional[str] = Field(None, description="Absenteeism range start")
    datafim: Optional[str] = Field(None, description="Absenteeism range end")


class CredentialResponse(BaseSchema):
    """Stored SOC credentials with the access key masked."""

    id: int
    type: str
    empresa: str
    codigo: str
    chave: str
    ativo: Optional[str] = None
    inativo: Optional[str] = None
    afastado: Optional[str] = None
    pendente: Optional[str] = None
    ferias: Optional[str] = None
    empresatrabalho: Optional[str] = None
    datainicio: Optional[str] = None
    datafim: Optional[str] = None
    created_at: datetime
    updated_at: datetime

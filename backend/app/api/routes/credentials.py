"""
SOC credential endpoints.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.schemas import CredentialResponse, CredentialUpdate
from app.core.dependencies import get_current_owner, get_db
from app.core.exceptions import InvalidInputError, NotFoundError
from app.models import SyncType
from app.repositories.credential_repository import credential_repository

router = APIRouter()


def _parse_type(raw: str) -> SyncType:
    sync_type = SyncType.parse(raw)
    if sync_type is None:
        raise InvalidInputError("Invalid credential type", field="type", value=raw)
    return sync_type


@router.get("/{credential_type}", response_model=CredentialResponse)
async def get_credentials(
    credential_type: str,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    Get the caller's SOC credentials for one export type.

    The access key is masked in the response.
    """
    sync_type = _parse_type(credential_type)
    credential = await credential_repository.get(owner_id, sync_type, db)
    if credential is None:
        raise NotFoundError("ApiCredential", sync_type.value)
    return credential.to_public_dict()


@router.put("/{credential_type}", response_model=CredentialResponse)
async def update_credentials(
    credential_type: str,
    update: CredentialUpdate,
    owner_id: str = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    Create or replace the caller's SOC credentials for one export type.

    Args:
        credential_type: Export type the credentials belong to
        update: New credential values
        owner_id: Authenticated caller
        db: Database session

    Returns:
        Stored credentials with the access key masked
    """
    sync_type = _parse_type(credential_type)
    credential = await credential_repository.upsert(
        owner_id, sync_type, update.model_dump(), db
    )
    return credential.to_public_dict()

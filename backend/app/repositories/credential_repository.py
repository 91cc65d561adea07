"""Persistence for SOC API credentials."""

from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import ApiCredential, SyncType


class CredentialRepository:
    """Repository for per-owner SOC credentials."""

    async def get(
        self, owner_id: str, sync_type: SyncType, db: AsyncSession
    ) -> Optional[ApiCredential]:
        result = await db.execute(
            select(ApiCredential).where(
                ApiCredential.owner_id == owner_id,
                ApiCredential.type == sync_type.value,
            )
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        owner_id: str,
        sync_type: SyncType,
        values: Dict[str, Any],
        db: AsyncSession,
    ) -> ApiCredential:
        """Create or replace the credentials for one export type."""
        credential = await self.get(owner_id, sync_type, db)
        if credential is None:
            credential = ApiCredential(owner_id=owner_id, type=sync_type.value)
            db.add(credential)
        credential.update_from_dict(
            values, exclude={"id", "owner_id", "type", "created_at", "updated_at"}
        )
        await db.commit()
        await db.refresh(credential)
        return credential


# Global instance
credential_repository = CredentialRepository()

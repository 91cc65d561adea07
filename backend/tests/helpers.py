"""Test helper functions."""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import jwt

from app.core import security
from app.models import SyncStatus, SyncType
from app.repositories.sync_log_repository import sync_log_repository

OWNER_ID = "owner-1"
OTHER_OWNER_ID = "owner-2"


def make_access_token(
    claims: Dict[str, Any], expires_delta: Optional[timedelta] = None
) -> str:
    """Sign a bearer token the way the hosted auth provider does."""
    settings = security.settings.security
    payload = dict(claims)
    payload["exp"] = datetime.utcnow() + (expires_delta or timedelta(minutes=30))
    if settings.audience and "aud" not in payload:
        payload["aud"] = settings.audience
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


async def create_job(
    db,
    status: SyncStatus = SyncStatus.PENDING,
    owner_id: str = OWNER_ID,
    sync_type: SyncType = SyncType.COMPANY,
    **fields: Any,
):
    """Create a sync job row directly through the repository."""
    return await sync_log_repository.create(
        sync_type, owner_id, db, status=status, **fields
    )


def company_record(code: str, name: str = "", **extra: Any) -> Dict[str, Any]:
    record = {"CODIGO": code, "NOMEABREVIADO": name or f"Company {code}"}
    record.update(extra)
    return record


def employee_record(
    code: str, company_code: str = "10", **extra: Any
) -> Dict[str, Any]:
    record = {
        "CODIGO": code,
        "CODIGOEMPRESA": company_code,
        "NOME": f"Employee {code}",
        "MATRICULAFUNCIONARIO": f"M{code}",
    }
    record.update(extra)
    return record


def absenteeism_record(
    registration: str = "M1",
    start: str = "01/02/2024",
    icd: str = "J11",
    **extra: Any,
) -> Dict[str, Any]:
    record = {
        "MATRICULA_FUNC": registration,
        "DT_INICIO_ATESTADO": start,
        "DT_FIM_ATESTADO": "03/02/2024",
        "CID_PRINCIPAL": icd,
        "SEXO": "1",
        "DIAS_AFASTADOS": "3",
    }
    record.update(extra)
    return record


def company_records(count: int) -> List[Dict[str, Any]]:
    return [company_record(str(i)) for i in range(1, count + 1)]

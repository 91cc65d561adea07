"""Upsert of SOC records into the owner's companies, employees and absenteeism."""

import logging
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Absenteeism, Company, Employee, SyncType
from app.repositories.entity_repository import entity_repository
from app.services.soc.field_maps import (
    ABSENTEEISM_CONVERTERS,
    ABSENTEEISM_FIELD_MAP,
    COMPANY_FIELD_MAP,
    EMPLOYEE_FIELD_MAP,
    map_record,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_COMPANY_NAME = "Unnamed company"
# Company code for employee records exported without CODIGOEMPRESA
UNKNOWN_COMPANY_CODE = "unknown"


class RecordReconciler:
    """
    Reconciles single SOC records against stored rows.

    Each record is looked up by its natural key within the owner's data and
    then updated or inserted and committed on its own. Failures are logged,
    rolled back and reported as ``False`` so one bad record never stops a
    batch.
    """

    def __init__(self, db: AsyncSession, owner_id: str):
        self.db = db
        self.owner_id = owner_id
        self.last_error: Optional[str] = None
        self._absenteeism_company_id: Optional[int] = None

    async def reconcile(self, sync_type: SyncType, record: Mapping[str, Any]) -> bool:
        """
        Upsert one record.

        Args:
            sync_type: Entity type of the record
            record: Raw SOC record

        Returns:
            True if the record was stored, False otherwise
        """
        self.last_error = None
        try:
            if sync_type == SyncType.COMPANY:
                await self.reconcile_company(record)
            elif sync_type == SyncType.EMPLOYEE:
                await self.reconcile_employee(record)
            elif sync_type == SyncType.ABSENTEEISM:
                await self.reconcile_absenteeism(record)
            else:
                raise ValueError(f"Unsupported sync type: {sync_type}")
            return True
        except Exception as e:
            await self.db.rollback()
            self.last_error = str(e)
            logger.error(
                f"Failed to reconcile {sync_type.value} record "
                f"{record.get('CODIGO') or record.get('MATRICULA_FUNC') or '?'}: {e}"
            )
            return False

    async def reconcile_company(self, record: Mapping[str, Any]) -> Company:
        values = map_record(record, COMPANY_FIELD_MAP)
        soc_code = values.get("soc_code")
        if not soc_code:
            raise ValueError("Company record has no CODIGO")
        if values.get("short_name") is None:
            values.pop("short_name", None)

        company = await entity_repository.find_company(self.owner_id, soc_code, self.db)
        if company:
            company.update_from_dict(values)
            company.is_placeholder = False  # type: ignore[assignment]
        else:
            short_name = values.pop("short_name", None) or values.get("corporate_name")
            if not short_name:
                raise ValueError(f"Company {soc_code} has no name")
            company = Company(
                owner_id=self.owner_id,
                short_name=short_name,
                is_placeholder=False,
                **values,
            )
            self.db.add(company)

        await self.db.commit()
        return company

    async def reconcile_employee(self, record: Mapping[str, Any]) -> Employee:
        values = map_record(record, EMPLOYEE_FIELD_MAP)
        soc_code = values.get("soc_code")
        if not soc_code:
            raise ValueError("Employee record has no CODIGO")
        company_code = values.get("company_soc_code") or UNKNOWN_COMPANY_CODE
        values["company_soc_code"] = company_code

        company = await self.ensure_company(company_code, values.get("company_name"))

        # An employee moved to another company keeps its row
        employee = await entity_repository.find_employee(
            self.owner_id, soc_code, self.db
        )
        if employee:
            employee.update_from_dict(values)
            employee.company_id = company.id
        else:
            employee = Employee(owner_id=self.owner_id, company_id=company.id, **values)
            self.db.add(employee)

        await self.db.commit()
        return employee

    async def ensure_company(self, soc_code: str, name: Optional[str]) -> Company:
        """
        Get the owner's company with ``soc_code``, creating a placeholder.

        Safe to call concurrently: if another writer inserts the same company
        first, the unique constraint rejects this insert and the winner's row
        is returned.
        """
        company = await entity_repository.find_company(self.owner_id, soc_code, self.db)
        if company:
            return company

        placeholder_name = name or PLACEHOLDER_COMPANY_NAME
        company = Company(
            owner_id=self.owner_id,
            soc_code=soc_code,
            short_name=placeholder_name,
            corporate_name=placeholder_name,
            is_placeholder=True,
        )
        self.db.add(company)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            existing = await entity_repository.find_company(
                self.owner_id, soc_code, self.db
            )
            if existing is None:
                raise
            return existing

        logger.info(f"Created placeholder company {soc_code} ({placeholder_name})")
        return company

    async def reconcile_absenteeism(self, record: Mapping[str, Any]) -> Absenteeism:
        values: Dict[str, Any] = map_record(
            record, ABSENTEEISM_FIELD_MAP, ABSENTEEISM_CONVERTERS
        )
        start_date = values.get("start_date")
        if start_date is None:
            raise ValueError("Absenteeism record has no valid DT_INICIO_ATESTADO")
        if values.get("end_date") is None:
            values["end_date"] = start_date

        company_id = await self.absenteeism_company_id()
        if company_id is None:
            raise ValueError("Owner has no company to attribute absenteeism to")

        registration = values.get("employee_registration")
        employee = None
        if registration:
            employee = await entity_repository.find_employee_by_registration(
                self.owner_id, registration, self.db
            )

        existing = await entity_repository.find_absenteeism(
            self.owner_id, registration, start_date, values.get("primary_icd"), self.db
        )
        if existing:
            existing.update_from_dict(values)
            existing.company_id = company_id  # type: ignore[assignment]
            existing.employee_id = employee.id if employee else None  # type: ignore[assignment]
            row = existing
        else:
            row = Absenteeism(
                owner_id=self.owner_id,
                company_id=company_id,
                employee_id=employee.id if employee else None,
                **values,
            )
            self.db.add(row)

        await self.db.commit()
        return row

    async def absenteeism_company_id(self) -> Optional[int]:
        """
        Company that absenteeism records are attributed to.

        SOC absenteeism exports carry no company code, so every record goes to
        the owner's oldest company.
        """
        if self._absenteeism_company_id is not None:
            return self._absenteeism_company_id

        company = await entity_repository.first_company(self.owner_id, self.db)
        if company is None:
            return None

        count = await entity_repository.count_companies(self.owner_id, self.db)
        if count > 1:
            logger.warning(
                f"Owner has {count} companies; attributing absenteeism "
                f"to company {company.soc_code} (id {company.id})"
            )
        self._absenteeism_company_id = company.id  # type: ignore[assignment]
        return self._absenteeism_company_id

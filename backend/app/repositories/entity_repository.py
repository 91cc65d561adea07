"""Natural-key lookups for synchronized entities."""

from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Absenteeism, Company, Employee


class EntityRepository:
    """Owner-scoped queries used by the record reconciler."""

    async def find_company(
        self, owner_id: str, soc_code: str, db: AsyncSession
    ) -> Optional[Company]:
        result = await db.execute(
            select(Company).where(
                Company.owner_id == owner_id, Company.soc_code == soc_code
            )
        )
        return result.scalar_one_or_none()

    async def first_company(self, owner_id: str, db: AsyncSession) -> Optional[Company]:
        """Get the owner's oldest company."""
        result = await db.execute(
            select(Company)
            .where(Company.owner_id == owner_id)
            .order_by(Company.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def count_companies(self, owner_id: str, db: AsyncSession) -> int:
        result = await db.execute(
            select(func.count()).select_from(Company).where(Company.owner_id == owner_id)
        )
        return int(result.scalar_one())

    async def find_employee(
        self, owner_id: str, soc_code: str, db: AsyncSession
    ) -> Optional[Employee]:
        result = await db.execute(
            select(Employee).where(
                Employee.owner_id == owner_id, Employee.soc_code == soc_code
            )
        )
        return result.scalar_one_or_none()

    async def find_employee_by_registration(
        self, owner_id: str, registration: str, db: AsyncSession
    ) -> Optional[Employee]:
        """Get the first employee with the given registration number."""
        result = await db.execute(
            select(Employee)
            .where(
                Employee.owner_id == owner_id,
                Employee.employee_registration == registration,
            )
            .order_by(Employee.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_absenteeism(
        self,
        owner_id: str,
        employee_registration: Optional[str],
        start_date: date,
        primary_icd: Optional[str],
        db: AsyncSession,
    ) -> Optional[Absenteeism]:
        query = select(Absenteeism).where(
            Absenteeism.owner_id == owner_id,
            Absenteeism.start_date == start_date,
        )
        # NULL never equals NULL in SQL, so missing key parts need IS NULL
        if employee_registration is None:
            query = query.where(Absenteeism.employee_registration.is_(None))
        else:
            query = query.where(
                Absenteeism.employee_registration == employee_registration
            )
        if primary_icd is None:
            query = query.where(Absenteeism.primary_icd.is_(None))
        else:
            query = query.where(Absenteeism.primary_icd == primary_icd)

        result = await db.execute(query.order_by(Absenteeism.id).limit(1))
        return result.scalar_one_or_none()


# Global instance
entity_repository = EntityRepository()

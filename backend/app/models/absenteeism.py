"""Absenteeism model for medical leave certificates exported by SOC."""

from sqlalchemy import Column, Date, ForeignKey, Index, Integer, String

from app.models.base import BaseModel


class Absenteeism(BaseModel):
    """
    One medical leave certificate.

    Identified by employee registration, start date and primary ICD code.
    The employee link is optional; the company link is required.
    """

    __tablename__ = "absenteeism"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(String(64), nullable=False, index=True)
    company_id = Column(
        Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    employee_id = Column(
        Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
    )

    unit = Column(String, nullable=True)
    sector = Column(String, nullable=True)
    employee_registration = Column(String, nullable=True)
    birth_date = Column(Date, nullable=True)
    gender = Column(Integer, nullable=True)

    certificate_type = Column(Integer, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    start_time = Column(String, nullable=True)
    end_time = Column(String, nullable=True)
    days_absent = Column(Integer, nullable=True)
    hours_absent = Column(String, nullable=True)

    primary_icd = Column(String, nullable=True)
    icd_description = Column(String, nullable=True)
    pathological_group = Column(String, nullable=True)
    license_type = Column(String, nullable=True)

    __table_args__ = (
        Index(
            "idx_absenteeism_natural_key",
            "owner_id",
            "employee_registration",
            "start_date",
            "primary_icd",
        ),
    )

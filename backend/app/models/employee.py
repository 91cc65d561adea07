"""Employee model for workers exported by SOC."""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)

from app.models.base import BaseModel


class Employee(BaseModel):
    """Employee keyed by its SOC code; the company link follows the latest export."""

    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(String(64), nullable=False, index=True)
    company_id = Column(
        Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )

    soc_code = Column(String(64), nullable=False)
    company_soc_code = Column(String(64), nullable=False)
    company_name = Column(String, nullable=True)
    full_name = Column(String, nullable=True)

    # Organization
    unit_code = Column(String, nullable=True)
    unit_name = Column(String, nullable=True)
    sector_code = Column(String, nullable=True)
    sector_name = Column(String, nullable=True)
    position_code = Column(String, nullable=True)
    position_name = Column(String, nullable=True)
    position_cbo = Column(String, nullable=True)
    cost_center = Column(String, nullable=True)
    cost_center_name = Column(String, nullable=True)
    employee_registration = Column(String, nullable=True, index=True)
    hr_registration = Column(String, nullable=True)
    hr_unit = Column(String, nullable=True)
    hr_sector = Column(String, nullable=True)
    hr_position = Column(String, nullable=True)
    hr_cost_center_unit = Column(String, nullable=True)

    # Documents
    cpf = Column(String, nullable=True)
    rg = Column(String, nullable=True)
    rg_state = Column(String, nullable=True)
    rg_issuer = Column(String, nullable=True)
    pis = Column(String, nullable=True)
    work_card = Column(String, nullable=True)
    work_card_series = Column(String, nullable=True)

    # Personal data
    status = Column(String, nullable=True)
    gender = Column(String, nullable=True)
    marital_status = Column(String, nullable=True)
    skin_color = Column(String, nullable=True)
    education = Column(String, nullable=True)
    birthplace = Column(String, nullable=True)
    mother_name = Column(String, nullable=True)
    is_disabled = Column(Boolean, nullable=True)
    disability_description = Column(String, nullable=True)

    # Employment
    contract_type = Column(String, nullable=True)
    shift_regime = Column(String, nullable=True)
    work_regime = Column(String, nullable=True)
    work_shift = Column(String, nullable=True)
    birth_date = Column(Date, nullable=True)
    hire_date = Column(Date, nullable=True)
    termination_date = Column(Date, nullable=True)
    last_update_date = Column(Date, nullable=True)

    # Contact
    address = Column(String, nullable=True)
    address_number = Column(String, nullable=True)
    neighborhood = Column(String, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    zip_code = Column(String, nullable=True)
    home_phone = Column(String, nullable=True)
    mobile_phone = Column(String, nullable=True)
    commercial_phone = Column(String, nullable=True)
    extension = Column(String, nullable=True)
    email = Column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("owner_id", "soc_code", name="uq_employees_owner_soc_code"),
    )

"""Company model for client companies exported by SOC."""

from sqlalchemy import Boolean, Column, Integer, String, UniqueConstraint

from app.models.base import BaseModel


class Company(BaseModel):
    """
    Company owned by one account, keyed by its SOC code.

    Placeholder rows are created when an employee references a company that
    has not been synchronized yet; a later company sync fills them in.
    """

    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(String(64), nullable=False, index=True)

    soc_code = Column(String(64), nullable=False)
    short_name = Column(String, nullable=False)
    corporate_name = Column(String, nullable=True)
    initial_corporate_name = Column(String, nullable=True)

    # Address
    address = Column(String, nullable=True)
    address_number = Column(String, nullable=True)
    address_complement = Column(String, nullable=True)
    neighborhood = Column(String, nullable=True)
    city = Column(String, nullable=True)
    zip_code = Column(String, nullable=True)
    state = Column(String, nullable=True)

    # Registration
    tax_id = Column(String, nullable=True)
    state_registration = Column(String, nullable=True)
    municipal_registration = Column(String, nullable=True)
    integration_client_code = Column(String, nullable=True)
    client_code = Column(String, nullable=True)

    is_active = Column(Boolean, nullable=True)
    is_placeholder = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("owner_id", "soc_code", name="uq_companies_owner_soc_code"),
    )

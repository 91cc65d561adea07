"""SOC API credentials stored per owner and export type."""

from typing import Any, Dict

from sqlalchemy import Column, Integer, String, UniqueConstraint

from app.models.base import BaseModel

# Columns sent to SOC as request parameters, in the order SOC documents them
SOC_PARAMETER_FIELDS = (
    "empresa",
    "codigo",
    "chave",
    "ativo",
    "inativo",
    "afastado",
    "pendente",
    "ferias",
    "empresatrabalho",
    "datainicio",
    "datafim",
)


class ApiCredential(BaseModel):
    """
    Credentials and filters for one SOC export.

    ``empresa``, ``codigo`` and ``chave`` identify the export. The employee
    export accepts status filters, the absenteeism export a date range.
    """

    __tablename__ = "api_credentials"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(String(64), nullable=False, index=True)
    type = Column(String(32), nullable=False)

    empresa = Column(String, nullable=False)
    codigo = Column(String, nullable=False)
    chave = Column(String, nullable=False)

    # Employee export filters
    ativo = Column(String, nullable=True)
    inativo = Column(String, nullable=True)
    afastado = Column(String, nullable=True)
    pendente = Column(String, nullable=True)
    ferias = Column(String, nullable=True)
    empresatrabalho = Column(String, nullable=True)

    # Absenteeism export range
    datainicio = Column(String, nullable=True)
    datafim = Column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("owner_id", "type", name="uq_api_credentials_owner_type"),
    )

    def to_parameters(self) -> Dict[str, Any]:
        """Non-empty SOC request parameters from this credential."""
        params: Dict[str, Any] = {}
        for name in SOC_PARAMETER_FIELDS:
            value = getattr(self, name)
            if value is not None and value != "":
                params[name] = value
        return params

    def to_public_dict(self) -> Dict[str, Any]:
        """Dictionary with the access key masked."""
        data = self.to_dict(exclude={"owner_id"})
        chave = data.get("chave") or ""
        if len(chave) > 8:
            data["chave"] = "*" * (len(chave) - 4) + chave[-4:]
        else:
            data["chave"] = "*" * len(chave)
        return data

"""
Field mapping tables between SOC export records and stored columns.

Each table maps a SOC field name to a column name. Values are converted by
column through ``COLUMN_CONVERTERS``; columns without a converter are stored
as trimmed text.
"""

import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

COMPANY_FIELD_MAP: Dict[str, str] = {
    "CODIGO": "soc_code",
    "NOMEABREVIADO": "short_name",
    "RAZAOSOCIAL": "corporate_name",
    "RAZAOSOCIALINICIAL": "initial_corporate_name",
    "ENDERECO": "address",
    "NUMEROENDERECO": "address_number",
    "COMPLEMENTOENDERECO": "address_complement",
    "BAIRRO": "neighborhood",
    "CIDADE": "city",
    "CEP": "zip_code",
    "UF": "state",
    "CNPJ": "tax_id",
    "INSCRICAOESTADUAL": "state_registration",
    "INSCRICAOMUNICIPAL": "municipal_registration",
    "ATIVO": "is_active",
    "CODIGOCLIENTEINTEGRACAO": "integration_client_code",
    "CÓD. CLIENTE": "client_code",
}

EMPLOYEE_FIELD_MAP: Dict[str, str] = {
    "CODIGO": "soc_code",
    "CODIGOEMPRESA": "company_soc_code",
    "NOMEEMPRESA": "company_name",
    "NOME": "full_name",
    "CODIGOUNIDADE": "unit_code",
    "NOMEUNIDADE": "unit_name",
    "CODIGOSETOR": "sector_code",
    "NOMESETOR": "sector_name",
    "CODIGOCARGO": "position_code",
    "NOMECARGO": "position_name",
    "CBOCARGO": "position_cbo",
    "CCUSTO": "cost_center",
    "NOMECENTROCUSTO": "cost_center_name",
    "MATRICULAFUNCIONARIO": "employee_registration",
    "CPF": "cpf",
    "RG": "rg",
    "UFRG": "rg_state",
    "ORGAOEMISSORRG": "rg_issuer",
    "SITUACAO": "status",
    "SEXO": "gender",
    "PIS": "pis",
    "CTPS": "work_card",
    "SERIECTPS": "work_card_series",
    "ESTADOCIVIL": "marital_status",
    "TIPOCONTATACAO": "contract_type",
    "DATA_NASCIMENTO": "birth_date",
    "DATA_ADMISSAO": "hire_date",
    "DATA_DEMISSAO": "termination_date",
    "ENDERECO": "address",
    "NUMERO_ENDERECO": "address_number",
    "BAIRRO": "neighborhood",
    "CIDADE": "city",
    "UF": "state",
    "CEP": "zip_code",
    "TELEFONERESIDENCIAL": "home_phone",
    "TELEFONECELULAR": "mobile_phone",
    "EMAIL": "email",
    "DEFICIENTE": "is_disabled",
    "DEFICIENCIA": "disability_description",
    "NM_MAE_FUNCIONARIO": "mother_name",
    "DATAULTALTERACAO": "last_update_date",
    "MATRICULARH": "hr_registration",
    "COR": "skin_color",
    "ESCOLARIDADE": "education",
    "NATURALIDADE": "birthplace",
    "RAMAL": "extension",
    "REGIMEREVEZAMENTO": "shift_regime",
    "REGIMETRABALHO": "work_regime",
    "TELCOMERCIAL": "commercial_phone",
    "TURNOTRABALHO": "work_shift",
    "RHUNIDADE": "hr_unit",
    "RHSETOR": "hr_sector",
    "RHCARGO": "hr_position",
    "RHCENTROCUSTOUNIDADE": "hr_cost_center_unit",
}

ABSENTEEISM_FIELD_MAP: Dict[str, str] = {
    "UNIDADE": "unit",
    "SETOR": "sector",
    "MATRICULA_FUNC": "employee_registration",
    "DT_NASCIMENTO": "birth_date",
    "SEXO": "gender",
    "TIPO_ATESTADO": "certificate_type",
    "DT_INICIO_ATESTADO": "start_date",
    "DT_FIM_ATESTADO": "end_date",
    "HORA_INICIO_ATESTADO": "start_time",
    "HORA_FIM_ATESTADO": "end_time",
    "DIAS_AFASTADOS": "days_absent",
    "HORAS_AFASTADO": "hours_absent",
    "CID_PRINCIPAL": "primary_icd",
    "DESCRICAO_CID": "icd_description",
    "GRUPO_PATOLOGICO": "pathological_group",
    "TIPO_LICENCA": "license_type",
}

# Date layouts seen in SOC exports
_DATE_FORMATS = (
    "%d/%m/%Y",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
)

_TRUE_FLAGS = {"1", "s", "sim", "true", "t", "y", "yes"}


def to_text(value: Any) -> Optional[str]:
    """Trimmed string, or None for empty values."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_flag(value: Any) -> Optional[bool]:
    """SOC flags are 1/0; anything other than a truthy marker is False."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_FLAGS


def to_int(value: Any) -> Optional[int]:
    """Integer from numeric or numeric-looking values."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip().replace(",", ".")
    if not text:
        return None
    try:
        return int(float(text))
    except (ValueError, OverflowError):
        logger.debug(f"Ignoring non-numeric value {value!r}")
        return None


def to_date(value: Any) -> Optional[date]:
    """Date from the layouts SOC uses; None when unparseable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        logger.debug(f"Ignoring unparseable date {value!r}")
        return None


COLUMN_CONVERTERS: Dict[str, Callable[[Any], Any]] = {
    "is_active": to_flag,
    "is_disabled": to_flag,
    "birth_date": to_date,
    "hire_date": to_date,
    "termination_date": to_date,
    "last_update_date": to_date,
    "start_date": to_date,
    "end_date": to_date,
    "certificate_type": to_int,
    "days_absent": to_int,
}

# Absenteeism stores gender as a numeric code, employees as text
ABSENTEEISM_CONVERTERS: Dict[str, Callable[[Any], Any]] = {
    **COLUMN_CONVERTERS,
    "gender": to_int,
}


def map_record(
    record: Mapping[str, Any],
    field_map: Mapping[str, str],
    converters: Mapping[str, Callable[[Any], Any]] = COLUMN_CONVERTERS,
) -> Dict[str, Any]:
    """
    Translate a SOC record into column values.

    Only fields present in the record are returned, so updating an existing
    row never clears columns the export did not include.
    """
    values: Dict[str, Any] = {}
    for source_field, column in field_map.items():
        if source_field not in record:
            continue
        convert = converters.get(column, to_text)
        values[column] = convert(record[source_field])
    return values

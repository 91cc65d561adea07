"""SOC export client, exceptions and field mappings."""

from .client import SocClient
from .exceptions import (
    CredentialsNotFoundError,
    InvalidResponseFormatError,
    SocException,
    SourceTimeoutError,
    SourceUnavailableError,
)
from .field_maps import (
    ABSENTEEISM_FIELD_MAP,
    COMPANY_FIELD_MAP,
    EMPLOYEE_FIELD_MAP,
    map_record,
)

__all__ = [
    "SocClient",
    "SocException",
    "CredentialsNotFoundError",
    "InvalidResponseFormatError",
    "SourceTimeoutError",
    "SourceUnavailableError",
    "ABSENTEEISM_FIELD_MAP",
    "COMPANY_FIELD_MAP",
    "EMPLOYEE_FIELD_MAP",
    "map_record",
]

"""
Per-request choice between the ORM and the hand-written SQL backend.

``X-Use-EF: true`` (any case) selects the ORM backend, any other value the
SQL backend. Without the header the configured default (``USE_ORM``) wins.
"""
import logging
from typing import Annotated, Optional

from fastapi import Depends, Header

from config import Settings, get_settings
from db import SessionDep
from services.base import AuthenticationService, CitizenService, GovernmentService, OperatorService
from services.orm.auth import OrmAuthenticationService
from services.orm.citizen import OrmCitizenService
from services.orm.government import OrmGovernmentService
from services.orm.operator import OrmOperatorService
from services.sql.auth import SqlAuthenticationService
from services.sql.citizen import SqlCitizenService
from services.sql.government import SqlGovernmentService
from services.sql.operator import SqlOperatorService

logger = logging.getLogger(__name__)

BACKEND_HEADER = "X-Use-EF"

SettingsDep = Annotated[Settings, Depends(get_settings)]

_BACKENDS = {
    "orm": {
        "auth": OrmAuthenticationService,
        "citizen": OrmCitizenService,
        "operator": OrmOperatorService,
        "government": OrmGovernmentService,
    },
    "sql": {
        "auth": SqlAuthenticationService,
        "citizen": SqlCitizenService,
        "operator": SqlOperatorService,
        "government": SqlGovernmentService,
    },
}


def resolve_backend(header_value: Optional[str], use_orm_default: bool) -> str:
    if header_value is None:
        return "orm" if use_orm_default else "sql"
    return "orm" if header_value.strip().lower() == "true" else "sql"


def get_backend(
    settings: SettingsDep,
    use_ef: Optional[str] = Header(default=None, alias=BACKEND_HEADER),
) -> str:
    backend = resolve_backend(use_ef, settings.use_orm)
    logger.debug("%s=%r -> %s backend", BACKEND_HEADER, use_ef, backend)
    return backend


BackendDep = Annotated[str, Depends(get_backend)]


def get_auth_service(session: SessionDep, backend: BackendDep) -> AuthenticationService:
    return _BACKENDS[backend]["auth"](session)


def get_citizen_service(session: SessionDep, backend: BackendDep) -> CitizenService:
    return _BACKENDS[backend]["citizen"](session)


def get_operator_service(session: SessionDep, backend: BackendDep) -> OperatorService:
    return _BACKENDS[backend]["operator"](session)


def get_government_service(session: SessionDep, backend: BackendDep) -> GovernmentService:
    return _BACKENDS[backend]["government"](session)


AuthServiceDep = Annotated[AuthenticationService, Depends(get_auth_service)]
CitizenServiceDep = Annotated[CitizenService, Depends(get_citizen_service)]
OperatorServiceDep = Annotated[OperatorService, Depends(get_operator_service)]
GovernmentServiceDep = Annotated[GovernmentService, Depends(get_government_service)]

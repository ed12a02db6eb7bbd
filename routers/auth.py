import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response
from itsdangerous import BadSignature, URLSafeTimedSerializer

from config import Settings
from models import Role
from schemas import LoginRequest
from services.factory import AuthServiceDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

SESSION_COOKIE = "session"


def _serializer(settings: Settings) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(settings.secret_key, salt="smartwaste-session")


def create_session_token(settings: Settings, user_id: str, role_id: int) -> str:
    """
    Store user_id + role in the signed token.
    Example data:
        {"user_id": "35202-1234567-1", "role_id": 2}
    """
    return _serializer(settings).dumps({"user_id": user_id, "role_id": role_id})


def verify_session_token(settings: Settings, token: str) -> Optional[dict]:
    """
    Returns {'user_id': ..., 'role_id': ...} if valid,
    or None if the token is invalid/expired.
    """
    try:
        return _serializer(settings).loads(token, max_age=settings.session_max_age)
    except BadSignature:
        return None


def get_current_session(
    settings: SettingsDep,
    session_token: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
) -> dict:
    """
    Reads the 'session' cookie and verifies the token.
    Raises 401 if not logged in / invalid.
    """
    if session_token is None:
        raise HTTPException(status_code=401, detail="Not logged in")

    data = verify_session_token(settings, session_token)
    if not data:
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    return data


CurrentSessionDep = Annotated[dict, Depends(get_current_session)]


def get_optional_session(
    settings: SettingsDep,
    session_token: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
) -> Optional[dict]:
    """Verified session data, or None when there is no valid cookie."""
    if session_token is None:
        return None
    return verify_session_token(settings, session_token)


OptionalSessionDep = Annotated[Optional[dict], Depends(get_optional_session)]


def require_role(role_id: int):
    """
    Dependency factory for role-scoped routers. Only enforced when
    REQUIRE_SESSION is on.
    """

    def dependency(
        settings: SettingsDep,
        session_token: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE),
    ) -> None:
        if not settings.require_session:
            return
        data = get_current_session(settings, session_token)
        if data.get("role_id") != role_id:
            raise HTTPException(status_code=403, detail=f"{Role.NAMES[role_id]} role required")

    return dependency


@router.post("/login")
def login(payload: LoginRequest, service: AuthServiceDep, settings: SettingsDep, response: Response):
    """
    Log in with CNIC + password and set a signed session cookie.
    """
    result = service.login(payload.cnic, payload.password)
    if not result.success:
        raise HTTPException(status_code=401, detail=result.message)

    token = create_session_token(settings, result.user_id, result.role_id)
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        secure=False,
        samesite="lax",
        max_age=settings.session_max_age,
    )
    logger.info("User %s logged in as %s", result.user_id, result.role_name)

    user = result.model_dump(by_alias=True, include={"user_id", "role_id", "role_name", "citizen_id", "operator_id"})
    return {"success": True, "user": user, "message": result.message}


@router.get("/me")
def read_me(current: CurrentSessionDep):
    """
    Get the logged-in user and role from the session cookie.
    """
    role_id = current["role_id"]
    return {"userID": current["user_id"], "roleID": role_id, "roleName": Role.NAMES.get(role_id)}


@router.post("/logout")
def logout(response: Response):
    """
    Clear the session cookie.
    """
    response.delete_cookie(SESSION_COOKIE)
    return {"success": True, "message": "Logged out"}


@router.get("/validate-cnic/{cnic}")
def validate_cnic(cnic: str, service: AuthServiceDep):
    return {"cnic": cnic, "valid": service.validate_cnic_format(cnic)}

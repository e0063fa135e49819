import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from .. import repo
from ..auth.deps import SESSION_COOKIE_NAME, SessionContext, get_current_user
from ..auth.security import create_access_token, hash_password, password_needs_rehash, verify_password
from ..config import ACCESS_TOKEN_TTL_MINUTES, DEV_MODE, RL_AUTH_LOGIN_LIMIT, RL_AUTH_REGISTER_LIMIT, RL_WINDOW_SECONDS
from ..database import SessionLocal
from ..http_helpers import normalize_email, normalize_gender, validate_registration_input
from ..schemas import LoginRequest, RegisterRequest
from ..services.events import log_product_event
from ..services.rate_limit import rate_limit_dependency
from ..services.roles import resolve_role

logger = logging.getLogger(__name__)

router = APIRouter()

RL_AUTH_REGISTER = rate_limit_dependency("auth_register", RL_AUTH_REGISTER_LIMIT, RL_WINDOW_SECONDS)
RL_AUTH_LOGIN = rate_limit_dependency("auth_login", RL_AUTH_LOGIN_LIMIT, RL_WINDOW_SECONDS)


def _is_bearer_mode(request: Request) -> bool:
    """Check if client requested bearer token mode (for mobile clients)."""
    return str(request.headers.get("X-Auth-Mode") or "").strip().lower() == "bearer"


def _set_session_cookie(response: Response, access_token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=access_token,
        httponly=True,
        secure=not DEV_MODE,
        samesite="lax",
        path="/",
        max_age=ACCESS_TOKEN_TTL_MINUTES * 60,
    )


def _session_response(user: dict[str, Any], request: Request, response: Response) -> dict[str, Any]:
    token = create_access_token(user_id=str(user["id"]), email=str(user["email"]))
    role = resolve_role(str(user["id"]))
    body: dict[str, Any] = {
        "user": {"id": str(user["id"]), "email": user["email"], "role": role.value},
        "expires_in": ACCESS_TOKEN_TTL_MINUTES * 60,
    }
    if _is_bearer_mode(request):
        body["access_token"] = token
        body["token_type"] = "bearer"
    else:
        _set_session_cookie(response, token)
    return body


@router.post("/register", status_code=201)
def auth_register(payload: RegisterRequest, request: Request, response: Response, _: None = RL_AUTH_REGISTER) -> dict[str, Any]:
    email, password = validate_registration_input(payload.email, payload.password)
    gender = normalize_gender(payload.gender)
    full_name = payload.full_name.strip()

    if repo.get_user_by_email(email):
        raise HTTPException(status_code=409, detail="Email already registered")
    created = repo.create_member(email, hash_password(password), full_name=full_name, gender=gender)
    if not created:
        raise HTTPException(status_code=409, detail="Email already registered")

    with SessionLocal() as db:
        log_product_event(db, event_name="user_registered", user_id=str(created["id"]))
        db.commit()
    logger.info(f"[auth] registered user_id={created['id']}")
    return _session_response(created, request, response)


@router.post("/login")
def auth_login(payload: LoginRequest, request: Request, response: Response, _: None = RL_AUTH_LOGIN) -> dict[str, Any]:
    email = normalize_email(payload.email)
    user = repo.get_user_by_email(email)
    if not user or not verify_password(payload.password, str(user.get("password_hash") or "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if user.get("disabled_at"):
        raise HTTPException(status_code=403, detail="Account disabled")
    if password_needs_rehash(str(user["password_hash"])):
        repo.update_password_hash(str(user["id"]), hash_password(payload.password))
    repo.update_last_login(str(user["id"]))
    logger.info(f"[auth] login user_id={user['id']}")
    return _session_response(user, request, response)


@router.post("/logout")
def auth_logout(response: Response, current_user: SessionContext = Depends(get_current_user)) -> dict[str, Any]:
    response.delete_cookie(key=SESSION_COOKIE_NAME, path="/")
    return {"ok": True}


@router.get("/me")
def auth_me(current_user: SessionContext = Depends(get_current_user)) -> dict[str, Any]:
    profile = repo.get_profile_by_user_id(current_user.user_id) or {}
    return {
        "user": current_user.as_dict(),
        "profile": {
            "full_name": profile.get("full_name"),
            "approved": bool(profile.get("approved")),
            "verified": bool(profile.get("verified")),
            "blocked": bool(profile.get("blocked")),
        },
    }


@router.get("/role")
def auth_role(current_user: SessionContext = Depends(get_current_user)) -> dict[str, Any]:
    return {"role": current_user.role.value, "is_admin": current_user.is_admin}

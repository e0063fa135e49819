"""
Authentication dependencies for FastAPI.

Supports two auth modes:
1. Cookie-based session (primary for web): httpOnly cookie contains access token
2. Bearer token (for API clients): Authorization header with Bearer token

Every request re-reads the account and its role from the database, so a
disabled account or a revoked admin role takes effect on the next call.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from fastapi import Cookie, Header, HTTPException
from pydantic import BaseModel

from rishta import repo
from rishta.auth.security import decode_access_token
from rishta.config import DEV_MODE
from rishta.services.roles import Role, resolve_role

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "rishta_session"


@dataclass(frozen=True)
class SessionContext:
    """The signed-in identity handed to every handler that needs one."""

    user_id: str
    email: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def as_dict(self) -> dict[str, Any]:
        return {"id": self.user_id, "email": self.email, "role": self.role.value, "is_admin": self.is_admin}


class AuthErrorDetail(BaseModel):
    message: str = "unauthorized"
    reason: str
    trace_id: str


class AuthError(Exception):
    """Raised when authentication fails with detailed reason."""

    def __init__(self, reason: str, detail: str = "unauthorized"):
        self.reason = reason
        self.detail = detail
        self.trace_id = str(uuid.uuid4())
        super().__init__(detail)


def _unauthorized(message: str, reason: str, trace_id: str, status_code: int = 401) -> HTTPException:
    if DEV_MODE:
        detail: dict[str, Any] = AuthErrorDetail(message=message, reason=reason, trace_id=trace_id).model_dump()
    else:
        detail = {"message": message, "trace_id": trace_id}
    return HTTPException(status_code=status_code, detail=detail)


def _log_auth_failure(
    reason: str,
    trace_id: str,
    token_prefix: str | None = None,
    auth_source: str | None = None,
    user_id: str | None = None,
) -> None:
    logger.warning(
        f"[AUTH_FAILURE] trace_id={trace_id} reason={reason} source={auth_source} "
        f"token_prefix={token_prefix} user_id={user_id}"
    )


def _extract_bearer(authorization: str | None) -> str:
    if not authorization:
        raise AuthError(reason="missing_token", detail="Missing Authorization header")
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise AuthError(reason="malformed_token", detail="Invalid Authorization header")
    return parts[1].strip()


def _validate_token(token: str, trace_id: str, auth_source: str) -> SessionContext:
    token_prefix = token[:8] + "..." if len(token) > 8 else token

    try:
        payload = decode_access_token(token)
    except HTTPException as e:
        reason = "token_expired" if "expired" in str(e.detail).lower() else "signature_invalid"
        _log_auth_failure(reason, trace_id, token_prefix, auth_source)
        raise _unauthorized("unauthorized", reason, trace_id)

    user_id = str(payload.get("sub", ""))
    if not user_id:
        _log_auth_failure("token_missing_subject", trace_id, token_prefix, auth_source)
        raise _unauthorized("unauthorized", "token_missing_subject", trace_id)

    user = repo.get_user_by_id(user_id)
    if not user:
        _log_auth_failure("token_user_not_found", trace_id, token_prefix, auth_source, user_id)
        raise _unauthorized("unauthorized", "token_user_not_found", trace_id)

    if user.get("disabled_at"):
        _log_auth_failure("account_disabled", trace_id, token_prefix, auth_source, user_id)
        raise _unauthorized("Account disabled", "account_disabled", trace_id, status_code=403)

    logger.debug(f"[auth] token valid user_id={user_id} source={auth_source}")
    return SessionContext(user_id=str(user["id"]), email=str(user["email"]), role=resolve_role(str(user["id"])))


def get_current_user(
    session_token: str | None = Cookie(default=None, alias=SESSION_COOKIE_NAME),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> SessionContext:
    """Cookie session first, then bearer token."""
    trace_id = str(uuid.uuid4())

    if session_token:
        return _validate_token(session_token, trace_id, "cookie")

    if authorization:
        try:
            token = _extract_bearer(authorization)
        except AuthError as e:
            _log_auth_failure(e.reason, e.trace_id, auth_source="bearer")
            raise _unauthorized(e.detail, e.reason, e.trace_id)
        return _validate_token(token, trace_id, "bearer")

    _log_auth_failure("missing_token", trace_id, auth_source="none")
    raise _unauthorized("Authentication required", "missing_token", trace_id)

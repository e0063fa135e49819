from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from fastapi import HTTPException
from passlib.context import CryptContext

from rishta.config import ACCESS_TOKEN_TTL_MINUTES, JWT_SECRET

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")
ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """False for a wrong password and for a hash passlib cannot identify."""
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        return False


def password_needs_rehash(password_hash: str) -> bool:
    try:
        return pwd_context.needs_update(password_hash)
    except ValueError:
        return False


def _signing_key() -> str:
    if not JWT_SECRET:
        raise HTTPException(status_code=500, detail="JWT secret not configured")
    return JWT_SECRET


def create_access_token(user_id: str, email: str, ttl_minutes: int | None = None) -> str:
    issued = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=ttl_minutes or ACCESS_TOKEN_TTL_MINUTES)
    claims: dict[str, Any] = {
        "sub": user_id,
        "email": email,
        "iat": int(issued.timestamp()),
        "exp": int((issued + lifetime).timestamp()),
    }
    return jwt.encode(claims, _signing_key(), algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    key = _signing_key()
    try:
        claims = jwt.decode(token, key, algorithms=[ALGORITHM], options={"require": ["sub", "exp"]})
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(status_code=401, detail="Token expired") from exc
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc
    if not isinstance(claims, dict):
        raise HTTPException(status_code=401, detail="Invalid token")
    return claims

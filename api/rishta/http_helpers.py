import re
from datetime import date
from typing import Any

from fastapi import UploadFile

from .config import PASSWORD_MIN_LENGTH
from .errors import InvalidInput

GENDERS = {"male", "female"}
MARITAL_STATUSES = {"never-married", "divorced", "widowed"}
ID_DOCUMENT_TYPES = {"cnic", "driving-license", "passport"}
MIN_AGE_YEARS = 18

_TEXT_LIMITS = {
    "full_name": 120,
    "city": 80,
    "education": 160,
    "profession": 160,
    "bio": 2000,
    "requirements": 2000,
}
_PHONE_RE = re.compile(r"^\+?[0-9 \-]{7,20}$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_registration_input(email: str, password: str) -> tuple[str, str]:
    e = normalize_email(email)
    if not re.match(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$", e):
        raise InvalidInput("Invalid email format")
    if len(e) > 254:
        raise InvalidInput("Email too long")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise InvalidInput(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    return e, password


def normalize_gender(value: Any) -> str:
    g = str(value or "").strip().lower()
    if g not in GENDERS:
        raise InvalidInput("gender must be male or female")
    return g


def _clean_text(payload: dict[str, Any], key: str) -> str | None:
    raw = payload.get(key)
    if raw is None:
        return None
    value = str(raw).strip()
    if not value:
        return None
    limit = _TEXT_LIMITS.get(key)
    if limit and len(value) > limit:
        raise InvalidInput(f"{key} must be {limit} characters or fewer")
    return value


def _clean_phone(payload: dict[str, Any], key: str) -> str | None:
    raw = payload.get(key)
    if raw is None or not str(raw).strip():
        return None
    value = str(raw).strip()
    if not _PHONE_RE.match(value):
        raise InvalidInput(f"{key} must be a valid phone number")
    return value


def parse_date_of_birth(raw: Any, today: date | None = None) -> date | None:
    if raw is None or not str(raw).strip():
        return None
    try:
        dob = date.fromisoformat(str(raw).strip())
    except ValueError as exc:
        raise InvalidInput("date_of_birth must be YYYY-MM-DD") from exc
    today = today or date.today()
    if dob > today:
        raise InvalidInput("date_of_birth cannot be in the future")
    age = today.year - dob.year - ((today.month, today.day) < (dob.month, dob.day))
    if age < MIN_AGE_YEARS:
        raise InvalidInput(f"You must be at least {MIN_AGE_YEARS} years old")
    return dob


def sanitize_profile_payload(payload: dict[str, Any], today: date | None = None) -> dict[str, Any]:
    """Owner-editable profile fields, validated. Required: full_name, gender, city.

    Optional fields are returned only when the payload carries the key, so an
    update leaves omitted fields as stored. An explicit null or blank clears.
    """
    full_name = _clean_text(payload, "full_name")
    city = _clean_text(payload, "city")
    if not full_name:
        raise InvalidInput("full_name is required")
    if not city:
        raise InvalidInput("city is required")
    gender = normalize_gender(payload.get("gender"))

    marital_status = _clean_text(payload, "marital_status")
    if marital_status is not None:
        marital_status = marital_status.lower()
        if marital_status not in MARITAL_STATUSES:
            raise InvalidInput("marital_status must be never-married, divorced or widowed")

    optional = {
        "date_of_birth": lambda: parse_date_of_birth(payload.get("date_of_birth"), today=today),
        "education": lambda: _clean_text(payload, "education"),
        "profession": lambda: _clean_text(payload, "profession"),
        "marital_status": lambda: marital_status,
        "bio": lambda: _clean_text(payload, "bio"),
        "requirements": lambda: _clean_text(payload, "requirements"),
        "phone": lambda: _clean_phone(payload, "phone"),
        "whatsapp": lambda: _clean_phone(payload, "whatsapp"),
    }
    fields: dict[str, Any] = {"full_name": full_name, "gender": gender, "city": city}
    for key, clean in optional.items():
        if key in payload:
            fields[key] = clean()
    return fields


async def read_upload(file: UploadFile) -> tuple[bytes, str | None]:
    data = await file.read()
    return data, file.content_type

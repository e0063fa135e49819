import json
import os
from pathlib import Path
from typing import Any

JWT_SECRET = os.getenv("JWT_SECRET", "")
ACCESS_TOKEN_TTL_MINUTES = int(os.getenv("ACCESS_TOKEN_TTL_MINUTES", "60"))
DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"
PASSWORD_MIN_LENGTH = int(os.getenv("PASSWORD_MIN_LENGTH", "8"))

ADMIN_BOOTSTRAP_EMAIL = os.getenv("ADMIN_BOOTSTRAP_EMAIL", "admin@rishta.local").strip().lower()
ADMIN_BOOTSTRAP_PASSWORD = os.getenv("ADMIN_BOOTSTRAP_PASSWORD", "")

_default_storage = Path(__file__).resolve().parents[1] / "storage"
STORAGE_ROOT = Path(os.getenv("STORAGE_ROOT", str(_default_storage)))
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(8 * 1024 * 1024)))

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173,http://localhost:8080").split(",")
    if origin.strip()
]

DEFAULT_PACKAGES: list[dict[str, Any]] = [
    {"name": "Basic", "price_pkr": 1500, "proposals_count": 5, "validity_days": 30},
    {"name": "Standard", "price_pkr": 3000, "proposals_count": 15, "validity_days": 90},
    {"name": "Premium", "price_pkr": 6000, "proposals_count": 40, "validity_days": 365},
]

if os.getenv("DEFAULT_PACKAGES_JSON"):
    try:
        DEFAULT_PACKAGES = list(json.loads(os.getenv("DEFAULT_PACKAGES_JSON", "[]")))
    except json.JSONDecodeError:
        pass

RL_AUTH_REGISTER_LIMIT = int(os.getenv("RL_AUTH_REGISTER_LIMIT", "30"))
RL_AUTH_LOGIN_LIMIT = int(os.getenv("RL_AUTH_LOGIN_LIMIT", "30"))
RL_PROPOSAL_SEND_LIMIT = int(os.getenv("RL_PROPOSAL_SEND_LIMIT", "30"))
RL_PROPOSAL_RESPOND_LIMIT = int(os.getenv("RL_PROPOSAL_RESPOND_LIMIT", "60"))
RL_CONTACT_LIMIT = int(os.getenv("RL_CONTACT_LIMIT", "120"))
RL_WINDOW_SECONDS = int(os.getenv("RL_WINDOW_SECONDS", "60"))

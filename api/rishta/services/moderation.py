"""
Admin moderation.

Each action is a single flag or status flip followed by an audit row. A failed
action raises before anything is written, so nothing is half applied.
"""

import logging
from typing import Any

from sqlalchemy.exc import IntegrityError

from .. import repo
from ..errors import InvalidInput, NotFound
from . import quota

logger = logging.getLogger(__name__)

PROFILE_ACTIONS: dict[str, tuple[str, bool]] = {
    "approve": ("approved", True),
    "block": ("blocked", True),
    "unblock": ("blocked", False),
    "verify": ("verified", True),
    "unverify": ("verified", False),
    "feature": ("featured", True),
    "unfeature": ("featured", False),
}


def moderate_profile(user_id: str, action: str, admin_user_id: str | None) -> dict[str, Any]:
    if action not in PROFILE_ACTIONS:
        raise InvalidInput(f"Unknown moderation action: {action}")
    flag, value = PROFILE_ACTIONS[action]
    row = repo.set_profile_flag(user_id, flag, value)
    if not row:
        raise NotFound("Profile not found")
    repo.create_admin_audit_event(
        action=f"profile_{action}",
        admin_user_id=admin_user_id,
        payload_json={"user_id": user_id, flag: value},
    )
    logger.info(f"[admin] profile_{action} user_id={user_id} by admin={admin_user_id}")
    return row


def review_payment(user_package_id: str, approve: bool, admin_user_id: str | None) -> dict[str, Any]:
    row = quota.review_purchase(user_package_id, approve)
    repo.create_admin_audit_event(
        action="payment_approve" if approve else "payment_reject",
        admin_user_id=admin_user_id,
        payload_json={"user_package_id": user_package_id, "user_id": str(row["user_id"])},
    )
    return row


def _package_fields(payload: dict[str, Any], *, partial: bool) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    if "name" in payload or not partial:
        name = str(payload.get("name") or "").strip()
        if not name:
            raise InvalidInput("name is required")
        fields["name"] = name
    for key, minimum in (("price_pkr", 0), ("proposals_count", 1), ("validity_days", 1)):
        if key not in payload:
            if not partial:
                raise InvalidInput(f"{key} is required")
            continue
        try:
            value = int(payload[key])
        except (TypeError, ValueError) as exc:
            raise InvalidInput(f"{key} must be an integer") from exc
        if value < minimum:
            raise InvalidInput(f"{key} must be >= {minimum}")
        fields[key] = value
    if "is_active" in payload:
        fields["is_active"] = bool(payload["is_active"])
    return fields


def create_package(payload: dict[str, Any], admin_user_id: str | None) -> dict[str, Any]:
    fields = _package_fields(payload, partial=False)
    row = repo.create_package(**fields)
    if not row:
        raise InvalidInput("A package with that name already exists")
    repo.create_admin_audit_event(action="package_create", admin_user_id=admin_user_id, payload_json={"package_id": row["id"], **fields})
    return row


def update_package(package_id: str, payload: dict[str, Any], admin_user_id: str | None) -> dict[str, Any]:
    fields = _package_fields(payload, partial=True)
    if not fields:
        raise InvalidInput("Nothing to update")
    try:
        row = repo.update_package(package_id, fields)
    except IntegrityError as exc:
        raise InvalidInput("A package with that name already exists") from exc
    if not row:
        raise NotFound("Package not found")
    repo.create_admin_audit_event(action="package_update", admin_user_id=admin_user_id, payload_json={"package_id": package_id, **fields})
    return row

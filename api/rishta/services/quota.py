"""
Proposal package ledger.

A user may send proposals only while one of their purchased packages is
approved, unexpired and has units left. Units are taken with a single
conditional UPDATE so concurrent senders serialise in the database and the
remaining count can never go below zero.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import insert, select, update

from .. import repo
from ..database import SessionLocal
from ..errors import AlreadyResolved, InvalidInput, NotFound
from ..models import Package, Profile, UserPackage
from .events import log_product_event

logger = logging.getLogger(__name__)

user_package = UserPackage.__table__
package = Package.__table__
profile = Profile.__table__

# Candidate rows are re-selected after a lost race; each retry skips a row that
# another transaction has just drained.
MAX_TAKE_ATTEMPTS = 5


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _sendable(user_id: str, now: datetime):
    return (
        user_package.c.user_id == user_id,
        user_package.c.payment_status == "approved",
        user_package.c.expires_at > now,
        user_package.c.proposals_remaining > 0,
    )


def _select_active_quota(db, user_id: str, now: datetime) -> dict[str, Any] | None:
    row = db.execute(
        select(user_package)
        .where(*_sendable(user_id, now))
        .order_by(user_package.c.created_at.desc(), user_package.c.id.desc())
        .limit(1)
    ).mappings().first()
    return repo.to_dict(row)


def get_active_quota(user_id: str, now: datetime | None = None) -> dict[str, Any] | None:
    now = now or _now_utc()
    with SessionLocal() as db:
        return _select_active_quota(db, user_id, now)


def _decrement(db, package_row_id: str, now: datetime) -> bool:
    result = db.execute(
        update(user_package)
        .where(
            user_package.c.id == package_row_id,
            user_package.c.payment_status == "approved",
            user_package.c.expires_at > now,
            user_package.c.proposals_remaining > 0,
        )
        .values(proposals_remaining=user_package.c.proposals_remaining - 1)
    )
    return result.rowcount == 1


def decrement_quota(package_row_id: str, now: datetime | None = None) -> bool:
    now = now or _now_utc()
    with SessionLocal() as db:
        taken = _decrement(db, package_row_id, now)
        if taken:
            db.commit()
        else:
            db.rollback()
    return taken


def take_quota_unit(db, user_id: str, now: datetime) -> dict[str, Any] | None:
    """Take one unit inside the caller's transaction.

    Returns the ledger row after the decrement, or None when the user has no
    sendable quota. The caller owns commit and rollback.
    """
    for _ in range(MAX_TAKE_ATTEMPTS):
        candidate = _select_active_quota(db, user_id, now)
        if not candidate:
            return None
        if _decrement(db, str(candidate["id"]), now):
            row = db.execute(select(user_package).where(user_package.c.id == candidate["id"])).mappings().first()
            return repo.to_dict(row)
        logger.info(f"[quota] lost race on user_package={candidate['id']} user_id={user_id}, retrying")
    return None


def record_purchase(
    user_id: str,
    package_id: str,
    proof_ref: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    now = now or _now_utc()
    pkg = repo.get_package(package_id)
    if not pkg:
        raise NotFound("Package not found")
    if not pkg.get("is_active"):
        raise InvalidInput("Package is no longer available")

    row_id = str(uuid.uuid4())
    with SessionLocal() as db:
        db.execute(
            insert(user_package).values(
                id=row_id,
                user_id=user_id,
                package_id=package_id,
                proposals_remaining=int(pkg["proposals_count"]),
                payment_status="pending",
                payment_proof_ref=proof_ref,
                expires_at=now + timedelta(days=int(pkg["validity_days"])),
                created_at=now,
            )
        )
        log_product_event(
            db,
            event_name="package_purchase_recorded",
            user_id=user_id,
            properties={"package_id": package_id, "user_package_id": row_id, "has_proof": bool(proof_ref)},
        )
        db.commit()
        row = db.execute(select(user_package).where(user_package.c.id == row_id)).mappings().first()
    logger.info(f"[quota] purchase recorded user_package={row_id} user_id={user_id} package={pkg['name']}")
    return repo.to_dict(row)


def review_purchase(row_id: str, approve: bool, now: datetime | None = None) -> dict[str, Any]:
    now = now or _now_utc()
    new_status = "approved" if approve else "rejected"
    with SessionLocal() as db:
        result = db.execute(
            update(user_package)
            .where(user_package.c.id == row_id, user_package.c.payment_status == "pending")
            .values(payment_status=new_status, reviewed_at=now)
        )
        if result.rowcount != 1:
            db.rollback()
            existing = db.execute(
                select(user_package.c.payment_status).where(user_package.c.id == row_id)
            ).scalar_one_or_none()
            if existing is None:
                raise NotFound("Payment not found")
            raise AlreadyResolved(f"Payment already {existing}", payment_status=existing)
        db.commit()
        row = db.execute(select(user_package).where(user_package.c.id == row_id)).mappings().first()
    logger.info(f"[quota] user_package={row_id} reviewed -> {new_status}")
    return repo.to_dict(row)


def list_my_packages(user_id: str, now: datetime | None = None) -> list[dict[str, Any]]:
    now = now or _now_utc()
    with SessionLocal() as db:
        rows = db.execute(
            select(
                user_package,
                package.c.name.label("package_name"),
                package.c.price_pkr,
                package.c.proposals_count,
            )
            .join(package, package.c.id == user_package.c.package_id)
            .where(user_package.c.user_id == user_id)
            .order_by(user_package.c.created_at.desc())
        ).mappings().all()
    out: list[dict[str, Any]] = []
    for r in rows:
        item = repo.to_dict(r)
        item["is_active"] = (
            item["payment_status"] == "approved"
            and item["expires_at"] > now
            and int(item["proposals_remaining"]) > 0
        )
        out.append(item)
    return out


def list_pending_payments(limit: int = 200) -> list[dict[str, Any]]:
    with SessionLocal() as db:
        rows = db.execute(
            select(
                user_package,
                profile.c.full_name,
                package.c.name.label("package_name"),
                package.c.price_pkr,
            )
            .join(package, package.c.id == user_package.c.package_id)
            .outerjoin(profile, profile.c.user_id == user_package.c.user_id)
            .where(user_package.c.payment_status == "pending")
            .order_by(user_package.c.created_at.desc())
            .limit(max(1, min(limit, 500)))
        ).mappings().all()
    return [repo.to_dict(r) for r in rows]


def seed_default_packages(definitions: list[dict[str, Any]]) -> int:
    if repo.count_packages() > 0:
        return 0
    created = 0
    for d in definitions:
        row = repo.create_package(
            name=str(d["name"]),
            price_pkr=int(d["price_pkr"]),
            proposals_count=int(d["proposals_count"]),
            validity_days=int(d.get("validity_days", 30)),
        )
        if row:
            created += 1
    logger.info(f"[quota] seeded {created} default packages")
    return created

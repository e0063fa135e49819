import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError

from .database import SessionLocal
from .models import AdminAuditEvent, Package, Profile, UserAccount, UserRole

user_account = UserAccount.__table__
user_role = UserRole.__table__
profile = Profile.__table__
package = Package.__table__
admin_audit_event = AdminAuditEvent.__table__

PROFILE_FLAGS = {"approved", "verified", "blocked", "featured"}
OWNER_EDITABLE_FIELDS = {
    "full_name",
    "gender",
    "date_of_birth",
    "city",
    "education",
    "profession",
    "marital_status",
    "bio",
    "requirements",
    "phone",
    "whatsapp",
}
PACKAGE_EDITABLE_FIELDS = {"name", "price_pkr", "proposals_count", "validity_days", "is_active"}


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Any) -> Any:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_dict(row: Any) -> dict[str, Any] | None:
    if row is None:
        return None
    return {key: as_utc(value) for key, value in dict(row).items()}


def create_member(email: str, password_hash: str, full_name: str, gender: str, role: str = "user") -> dict[str, Any] | None:
    """Account, profile and role in one transaction. None when the email is taken."""
    user_id = str(uuid.uuid4())
    try:
        with SessionLocal() as db:
            db.execute(insert(user_account).values(id=user_id, email=email, password_hash=password_hash))
            db.execute(insert(profile).values(user_id=user_id, full_name=full_name, gender=gender))
            db.execute(insert(user_role).values(user_id=user_id, role=role))
            db.commit()
    except IntegrityError:
        return None
    return get_user_by_id(user_id)


def get_user_by_email(email: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(select(user_account).where(user_account.c.email == email)).mappings().first()
    return to_dict(row)


def get_user_by_id(user_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(select(user_account).where(user_account.c.id == user_id)).mappings().first()
    return to_dict(row)


def update_last_login(user_id: str) -> None:
    with SessionLocal() as db:
        db.execute(update(user_account).where(user_account.c.id == user_id).values(last_login_at=_now_utc()))
        db.commit()


def update_password_hash(user_id: str, password_hash: str) -> None:
    with SessionLocal() as db:
        db.execute(update(user_account).where(user_account.c.id == user_id).values(password_hash=password_hash))
        db.commit()


def grant_role(user_id: str, role: str) -> None:
    with SessionLocal() as db:
        exists = db.execute(
            select(user_role.c.id).where(user_role.c.user_id == user_id, user_role.c.role == role)
        ).first()
        if exists:
            return
        try:
            db.execute(insert(user_role).values(user_id=user_id, role=role))
            db.commit()
        except IntegrityError:
            db.rollback()


def list_roles(user_id: str) -> set[str]:
    with SessionLocal() as db:
        rows = db.execute(select(user_role.c.role).where(user_role.c.user_id == user_id)).scalars().all()
    return {str(r) for r in rows}


def ensure_bootstrap_admin(email: str, password_hash: str) -> dict[str, Any] | None:
    user = get_user_by_email(email)
    if not user:
        user = create_member(email, password_hash, full_name="Administrator", gender="male", role="admin")
        if not user:
            return None
    grant_role(str(user["id"]), "admin")
    return user


def get_profile_by_user_id(user_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(select(profile).where(profile.c.user_id == user_id)).mappings().first()
    return to_dict(row)


def update_profile(user_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
    values = {k: v for k, v in fields.items() if k in OWNER_EDITABLE_FIELDS or k in {
        "profile_picture_url",
        "id_document_type",
        "id_document_ref",
        "selfie_ref",
        "verified",
    }}
    if not values:
        return get_profile_by_user_id(user_id)
    values["updated_at"] = _now_utc()
    with SessionLocal() as db:
        result = db.execute(update(profile).where(profile.c.user_id == user_id).values(**values))
        if result.rowcount == 0:
            db.rollback()
            return None
        db.commit()
    return get_profile_by_user_id(user_id)


def set_profile_flag(user_id: str, flag: str, value: bool) -> dict[str, Any] | None:
    if flag not in PROFILE_FLAGS:
        raise ValueError(f"Unknown profile flag: {flag}")
    with SessionLocal() as db:
        result = db.execute(
            update(profile).where(profile.c.user_id == user_id).values({flag: bool(value), "updated_at": _now_utc()})
        )
        if result.rowcount == 0:
            db.rollback()
            return None
        db.commit()
    return get_profile_by_user_id(user_id)


def list_profiles_admin(status: str | None = None, offset: int = 0, limit: int = 200) -> tuple[list[dict[str, Any]], int]:
    query = select(profile, user_account.c.email).join(user_account, user_account.c.id == profile.c.user_id)
    count_query = select(func.count()).select_from(profile)
    if status == "pending":
        cond = (profile.c.approved.is_(False)) & (profile.c.blocked.is_(False))
    elif status == "approved":
        cond = (profile.c.approved.is_(True)) & (profile.c.blocked.is_(False))
    elif status == "blocked":
        cond = profile.c.blocked.is_(True)
    else:
        cond = None
    if cond is not None:
        query = query.where(cond)
        count_query = count_query.where(cond)
    query = query.order_by(profile.c.created_at.desc()).offset(max(0, offset)).limit(max(1, min(limit, 500)))
    with SessionLocal() as db:
        rows = db.execute(query).mappings().all()
        total = db.execute(count_query).scalar_one()
    return [to_dict(r) for r in rows], int(total or 0)


def get_package(package_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(select(package).where(package.c.id == package_id)).mappings().first()
    return to_dict(row)


def list_packages(active_only: bool = True) -> list[dict[str, Any]]:
    query = select(package)
    if active_only:
        query = query.where(package.c.is_active.is_(True))
    with SessionLocal() as db:
        rows = db.execute(query.order_by(package.c.price_pkr.asc(), package.c.name.asc())).mappings().all()
    return [to_dict(r) for r in rows]


def count_packages() -> int:
    with SessionLocal() as db:
        return int(db.execute(select(func.count()).select_from(package)).scalar_one() or 0)


def create_package(name: str, price_pkr: int, proposals_count: int, validity_days: int, is_active: bool = True) -> dict[str, Any] | None:
    try:
        with SessionLocal() as db:
            package_id = str(uuid.uuid4())
            db.execute(
                insert(package).values(
                    id=package_id,
                    name=name,
                    price_pkr=price_pkr,
                    proposals_count=proposals_count,
                    validity_days=validity_days,
                    is_active=is_active,
                )
            )
            db.commit()
    except IntegrityError:
        return None
    return get_package(package_id)


def update_package(package_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
    values = {k: v for k, v in fields.items() if k in PACKAGE_EDITABLE_FIELDS}
    if not values:
        return get_package(package_id)
    with SessionLocal() as db:
        result = db.execute(update(package).where(package.c.id == package_id).values(**values))
        if result.rowcount == 0:
            db.rollback()
            return None
        db.commit()
    return get_package(package_id)


def create_admin_audit_event(action: str, admin_user_id: str | None, payload_json: dict[str, Any] | None = None) -> None:
    with SessionLocal() as db:
        db.execute(
            insert(admin_audit_event).values(
                action=action,
                admin_user_id=admin_user_id,
                payload_json=payload_json or {},
            )
        )
        db.commit()


def list_admin_audit_events(limit: int = 50, action: str | None = None) -> list[dict[str, Any]]:
    query = select(admin_audit_event)
    if action:
        query = query.where(admin_audit_event.c.action == action)
    with SessionLocal() as db:
        rows = db.execute(
            query.order_by(admin_audit_event.c.created_at.desc()).limit(max(1, min(limit, 500)))
        ).mappings().all()
    return [to_dict(r) for r in rows]

from typing import Any

from sqlalchemy import func, select

from .. import repo
from ..database import SessionLocal
from ..models import Profile
from .proposals import statuses_for_viewer

profile = Profile.__table__

# Contact columns, document refs and moderation internals never leave through
# the directory.
PUBLIC_COLUMNS = (
    profile.c.id,
    profile.c.user_id,
    profile.c.full_name,
    profile.c.gender,
    profile.c.date_of_birth,
    profile.c.city,
    profile.c.education,
    profile.c.profession,
    profile.c.marital_status,
    profile.c.bio,
    profile.c.requirements,
    profile.c.profile_picture_url,
    profile.c.verified,
    profile.c.featured,
)


def _listed():
    return (profile.c.approved.is_(True), profile.c.blocked.is_(False))


def list_directory(
    viewer_id: str,
    gender: str | None = None,
    city: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[dict[str, Any]], int]:
    conds = [*_listed(), profile.c.user_id != str(viewer_id)]
    if gender:
        conds.append(profile.c.gender == gender.strip().lower())
    if city:
        conds.append(func.lower(profile.c.city) == city.strip().lower())

    with SessionLocal() as db:
        rows = db.execute(
            select(*PUBLIC_COLUMNS)
            .where(*conds)
            .order_by(profile.c.featured.desc(), profile.c.created_at.desc())
            .offset(max(0, offset))
            .limit(max(1, min(limit, 200)))
        ).mappings().all()
        total = db.execute(select(func.count()).select_from(profile).where(*conds)).scalar_one()
        items = [repo.to_dict(r) for r in rows]
        badges = statuses_for_viewer(db, str(viewer_id), [str(i["user_id"]) for i in items])

    for item in items:
        item["proposal"] = badges.get(str(item["user_id"]))
    return items, int(total or 0)


def get_public_profile(viewer_id: str, target_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(
            select(*PUBLIC_COLUMNS).where(*_listed(), profile.c.user_id == str(target_id))
        ).mappings().first()
        if not row:
            return None
        item = repo.to_dict(row)
        item["proposal"] = statuses_for_viewer(db, str(viewer_id), [str(target_id)]).get(str(target_id))
    return item

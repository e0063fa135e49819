from typing import Any

from fastapi import APIRouter, Depends, File, Form, UploadFile

from ..auth.deps import SessionContext, get_current_user
from ..config import RL_CONTACT_LIMIT, RL_WINDOW_SECONDS
from ..errors import NotFound
from ..http_helpers import normalize_gender, read_upload, sanitize_profile_payload
from ..schemas import ContactResponse
from ..services import profiles
from ..services.contacts import get_contact_if_accepted
from ..services.directory import get_public_profile, list_directory
from ..services.rate_limit import rate_limit_dependency

router = APIRouter()

RL_CONTACT = rate_limit_dependency("profile_contact", RL_CONTACT_LIMIT, RL_WINDOW_SECONDS)


@router.get("/users/me/profile")
def get_my_profile(current_user: SessionContext = Depends(get_current_user)) -> dict[str, Any]:
    return {"profile": profiles.get_own_profile(current_user.user_id)}


@router.put("/users/me/profile")
def update_my_profile(payload: dict[str, Any], current_user: SessionContext = Depends(get_current_user)) -> dict[str, Any]:
    fields = sanitize_profile_payload(payload)
    return {"profile": profiles.update_own_profile(current_user.user_id, fields)}


@router.post("/users/me/profile/picture")
async def upload_profile_picture(
    picture: UploadFile = File(...),
    current_user: SessionContext = Depends(get_current_user),
) -> dict[str, Any]:
    data, content_type = await read_upload(picture)
    updated = profiles.set_profile_picture(current_user.user_id, data, content_type)
    return {"profile_picture_url": updated.get("profile_picture_url")}


@router.post("/users/me/identity-documents")
async def upload_identity_documents(
    id_type: str = Form(...),
    id_document: UploadFile = File(...),
    selfie: UploadFile = File(...),
    current_user: SessionContext = Depends(get_current_user),
) -> dict[str, Any]:
    document = await read_upload(id_document)
    selfie_upload = await read_upload(selfie)
    updated = profiles.submit_identity_documents(current_user.user_id, id_type, document, selfie_upload)
    return {"ok": True, "id_document_type": updated.get("id_document_type"), "verified": bool(updated.get("verified"))}


@router.get("/profiles")
def browse_profiles(
    gender: str | None = None,
    city: str | None = None,
    offset: int = 0,
    limit: int = 50,
    current_user: SessionContext = Depends(get_current_user),
) -> dict[str, Any]:
    items, total = list_directory(
        current_user.user_id,
        gender=normalize_gender(gender) if gender else None,
        city=city,
        offset=offset,
        limit=limit,
    )
    return {"profiles": items, "total": total, "offset": offset, "limit": limit}


@router.get("/profiles/{user_id}")
def view_profile(user_id: str, current_user: SessionContext = Depends(get_current_user)) -> dict[str, Any]:
    item = get_public_profile(current_user.user_id, user_id)
    if not item:
        raise NotFound("Profile not found")
    return {"profile": item}


@router.get("/profiles/{user_id}/contact", response_model=ContactResponse)
def view_contact(user_id: str, current_user: SessionContext = Depends(get_current_user), _: None = RL_CONTACT) -> dict[str, Any]:
    return {"contact": get_contact_if_accepted(current_user.user_id, user_id)}

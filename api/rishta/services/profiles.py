import logging
from typing import Any

from .. import repo
from ..database import SessionLocal
from ..errors import InvalidInput, NotFound
from ..http_helpers import ID_DOCUMENT_TYPES
from .events import log_product_event
from .storage import IMAGE_TYPES, PRIVATE_BUCKET, PUBLIC_BUCKET, object_name, storage, validate_upload

logger = logging.getLogger(__name__)


def _log(user_id: str, event_name: str, properties: dict[str, Any] | None = None) -> None:
    with SessionLocal() as db:
        log_product_event(db, event_name=event_name, user_id=user_id, properties=properties)
        db.commit()


def get_own_profile(user_id: str) -> dict[str, Any]:
    row = repo.get_profile_by_user_id(user_id)
    if not row:
        raise NotFound("Profile not found")
    return row


def update_own_profile(user_id: str, fields: dict[str, Any]) -> dict[str, Any]:
    updated = repo.update_profile(user_id, fields)
    if not updated:
        raise NotFound("Profile not found")
    _log(user_id, "profile_updated", {"fields": sorted(k for k, v in fields.items() if v is not None)})
    return updated


def set_profile_picture(user_id: str, data: bytes, content_type: str | None) -> dict[str, Any]:
    ext = validate_upload(data, content_type, IMAGE_TYPES, "Profile picture")
    path = storage.upload(PUBLIC_BUCKET, object_name(user_id, "picture", ext), data)
    updated = repo.update_profile(user_id, {"profile_picture_url": storage.public_url(PUBLIC_BUCKET, path)})
    if not updated:
        raise NotFound("Profile not found")
    _log(user_id, "profile_picture_uploaded")
    return updated


def submit_identity_documents(
    user_id: str,
    id_type: str,
    document: tuple[bytes, str | None],
    selfie: tuple[bytes, str | None],
) -> dict[str, Any]:
    id_type = str(id_type or "").strip().lower()
    if id_type not in ID_DOCUMENT_TYPES:
        raise InvalidInput("id_type must be cnic, driving-license or passport")
    doc_ext = validate_upload(document[0], document[1], IMAGE_TYPES, "ID document")
    selfie_ext = validate_upload(selfie[0], selfie[1], IMAGE_TYPES, "Selfie")
    if not repo.get_profile_by_user_id(user_id):
        raise NotFound("Profile not found")

    doc_ref = storage.upload(PRIVATE_BUCKET, object_name(user_id, "id_document", doc_ext), document[0])
    selfie_ref = storage.upload(PRIVATE_BUCKET, object_name(user_id, "selfie", selfie_ext), selfie[0])
    # New documents need a fresh review.
    updated = repo.update_profile(
        user_id,
        {"id_document_type": id_type, "id_document_ref": doc_ref, "selfie_ref": selfie_ref, "verified": False},
    )
    _log(user_id, "identity_documents_submitted", {"id_type": id_type})
    logger.info(f"[profile] identity documents submitted user_id={user_id} id_type={id_type}")
    return updated or {}

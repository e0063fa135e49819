from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import FileResponse

from .. import repo
from ..auth.admin_deps import require_admin
from ..auth.deps import SessionContext
from ..errors import InvalidInput
from ..services import moderation, quota
from ..services.storage import PRIVATE_BUCKET, storage

router = APIRouter()

PROFILE_STATUSES = {"pending", "approved", "blocked"}


def _json(data: Any) -> Any:
    return jsonable_encoder(data)


@router.get("/admin/profiles")
def admin_profiles_list(
    status: str | None = None,
    offset: int = 0,
    limit: int = 200,
    admin_user: SessionContext = Depends(require_admin),
) -> dict[str, Any]:
    _ = admin_user
    if status and status not in PROFILE_STATUSES:
        raise InvalidInput("status must be pending, approved or blocked")
    rows, total = repo.list_profiles_admin(status=status, offset=offset, limit=limit)
    return _json({"profiles": rows, "count": total, "offset": offset, "limit": limit})


@router.post("/admin/profiles/{user_id}/{action}")
def admin_profiles_moderate(
    user_id: str,
    action: str,
    admin_user: SessionContext = Depends(require_admin),
) -> dict[str, Any]:
    row = moderation.moderate_profile(user_id, action, admin_user.user_id)
    return _json({"profile": row})


@router.get("/admin/payments/pending")
def admin_payments_pending(limit: int = 200, admin_user: SessionContext = Depends(require_admin)) -> dict[str, Any]:
    _ = admin_user
    rows = quota.list_pending_payments(limit=limit)
    return _json({"payments": rows, "count": len(rows)})


@router.post("/admin/payments/{user_package_id}/approve")
def admin_payments_approve(user_package_id: str, admin_user: SessionContext = Depends(require_admin)) -> dict[str, Any]:
    return _json({"user_package": moderation.review_payment(user_package_id, True, admin_user.user_id)})


@router.post("/admin/payments/{user_package_id}/reject")
def admin_payments_reject(user_package_id: str, admin_user: SessionContext = Depends(require_admin)) -> dict[str, Any]:
    return _json({"user_package": moderation.review_payment(user_package_id, False, admin_user.user_id)})


@router.get("/admin/packages")
def admin_packages_list(admin_user: SessionContext = Depends(require_admin)) -> dict[str, Any]:
    _ = admin_user
    return _json({"packages": repo.list_packages(active_only=False)})


@router.post("/admin/packages", status_code=201)
def admin_packages_create(
    payload: dict[str, Any] = Body(...),
    admin_user: SessionContext = Depends(require_admin),
) -> dict[str, Any]:
    return _json({"package": moderation.create_package(payload, admin_user.user_id)})


@router.patch("/admin/packages/{package_id}")
def admin_packages_update(
    package_id: str,
    payload: dict[str, Any] = Body(...),
    admin_user: SessionContext = Depends(require_admin),
) -> dict[str, Any]:
    return _json({"package": moderation.update_package(package_id, payload, admin_user.user_id)})


@router.get("/admin/audit")
def admin_audit_events(
    action: str | None = None,
    limit: int = 50,
    admin_user: SessionContext = Depends(require_admin),
) -> dict[str, Any]:
    _ = admin_user
    action_filter = str(action or "").strip().lower() or None
    rows = repo.list_admin_audit_events(limit=max(1, min(500, int(limit))), action=action_filter)
    return _json({"events": rows, "count": len(rows)})


@router.get("/admin/documents/{path:path}")
def admin_document_download(path: str, admin_user: SessionContext = Depends(require_admin)) -> FileResponse:
    """Identity documents, selfies and payment proofs live in the private bucket."""
    target = storage.open_path(PRIVATE_BUCKET, path)
    repo.create_admin_audit_event(action="document_view", admin_user_id=admin_user.user_id, payload_json={"path": path})
    return FileResponse(target)

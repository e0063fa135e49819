import logging
from typing import Any

from fastapi import APIRouter, Depends, File, UploadFile

from .. import repo
from ..auth.deps import SessionContext, get_current_user
from ..http_helpers import read_upload
from ..schemas import PackageResponse
from ..services import quota
from ..services.storage import PRIVATE_BUCKET, PROOF_TYPES, object_name, storage, validate_upload

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/packages", response_model=list[PackageResponse])
def list_catalog(current_user: SessionContext = Depends(get_current_user)) -> list[dict[str, Any]]:
    return repo.list_packages(active_only=True)


@router.post("/packages/{package_id}/purchase", status_code=201)
async def purchase_package(
    package_id: str,
    payment_proof: UploadFile | None = File(None),
    current_user: SessionContext = Depends(get_current_user),
) -> dict[str, Any]:
    proof_ref = None
    if payment_proof is not None:
        data, content_type = await read_upload(payment_proof)
        ext = validate_upload(data, content_type, PROOF_TYPES, "Payment proof")
        proof_ref = storage.upload(PRIVATE_BUCKET, object_name(current_user.user_id, "payment_proof", ext), data)
        logger.info(f"[packages] payment proof stored user_id={current_user.user_id} package_id={package_id}")
    row = quota.record_purchase(current_user.user_id, package_id, proof_ref=proof_ref)
    return {"user_package": row}


@router.get("/users/me/packages")
def my_packages(current_user: SessionContext = Depends(get_current_user)) -> dict[str, Any]:
    return {"packages": quota.list_my_packages(current_user.user_id)}


@router.get("/users/me/quota")
def my_quota(current_user: SessionContext = Depends(get_current_user)) -> dict[str, Any]:
    active = quota.get_active_quota(current_user.user_id)
    return {
        "active": active,
        "remaining": int(active["proposals_remaining"]) if active else 0,
    }

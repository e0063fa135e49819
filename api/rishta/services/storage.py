"""Local object storage with named buckets.

``profile-pictures`` is public and served as static files; ``documents`` holds
identity documents, selfies and payment proofs and is only readable through
admin routes.
"""

import logging
import uuid
from pathlib import Path

from ..config import MAX_UPLOAD_BYTES, PUBLIC_BASE_URL, STORAGE_ROOT
from ..errors import InvalidInput, NotFound

logger = logging.getLogger(__name__)

PUBLIC_BUCKET = "profile-pictures"
PRIVATE_BUCKET = "documents"
BUCKETS = {PUBLIC_BUCKET, PRIVATE_BUCKET}

IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}
PROOF_TYPES = {**IMAGE_TYPES, "application/pdf": ".pdf"}


class LocalObjectStorage:
    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _resolve(self, bucket: str, path: str) -> Path:
        if bucket not in BUCKETS:
            raise InvalidInput(f"Unknown bucket: {bucket}")
        base = (self.root / bucket).resolve()
        target = (base / path).resolve()
        if base not in target.parents:
            raise InvalidInput("Invalid storage path")
        return target

    def upload(self, bucket: str, path: str, data: bytes) -> str:
        target = self._resolve(bucket, path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.info(f"[storage] stored {bucket}/{path} ({len(data)} bytes)")
        return path

    def public_url(self, bucket: str, path: str) -> str:
        if bucket != PUBLIC_BUCKET:
            raise InvalidInput(f"Bucket {bucket} is not public")
        self._resolve(bucket, path)
        return f"{PUBLIC_BASE_URL}/storage/{bucket}/{path}"

    def open_path(self, bucket: str, path: str) -> Path:
        target = self._resolve(bucket, path)
        if not target.is_file():
            raise NotFound("File not found")
        return target

    def bucket_dir(self, bucket: str) -> Path:
        d = self.root / bucket
        d.mkdir(parents=True, exist_ok=True)
        return d


storage = LocalObjectStorage(STORAGE_ROOT)


def validate_upload(data: bytes, content_type: str | None, allowed: dict[str, str], label: str) -> str:
    ctype = (content_type or "").lower()
    if ctype not in allowed:
        kinds = ", ".join(sorted({ext.lstrip(".").upper() for ext in allowed.values()}))
        raise InvalidInput(f"{label} must be one of: {kinds}")
    if not data:
        raise InvalidInput(f"{label} is empty")
    if len(data) > MAX_UPLOAD_BYTES:
        raise InvalidInput(f"{label} must be <= {MAX_UPLOAD_BYTES // (1024 * 1024)}MB")
    return allowed[ctype]


def object_name(owner_user_id: str, kind: str, ext: str) -> str:
    return f"{owner_user_id}/{kind}_{uuid.uuid4().hex}{ext}"

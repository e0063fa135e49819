import pytest

from rishta.errors import InvalidInput, NotFound
from rishta.services.rate_limit import InMemoryRateLimiter
from rishta.services.storage import (
    IMAGE_TYPES,
    PRIVATE_BUCKET,
    PROOF_TYPES,
    PUBLIC_BUCKET,
    LocalObjectStorage,
    validate_upload,
)


def test_upload_and_open(tmp_path):
    store = LocalObjectStorage(tmp_path)
    path = store.upload(PRIVATE_BUCKET, "u1/selfie.png", b"data")
    assert store.open_path(PRIVATE_BUCKET, path).read_bytes() == b"data"
    with pytest.raises(NotFound):
        store.open_path(PRIVATE_BUCKET, "u1/other.png")


def test_paths_cannot_escape_bucket(tmp_path):
    store = LocalObjectStorage(tmp_path)
    with pytest.raises(InvalidInput):
        store.upload(PRIVATE_BUCKET, "../profile-pictures/x.png", b"data")
    with pytest.raises(InvalidInput):
        store.open_path(PRIVATE_BUCKET, "../../etc/passwd")
    with pytest.raises(InvalidInput):
        store.upload("elsewhere", "x.png", b"data")


def test_only_public_bucket_has_urls(tmp_path):
    store = LocalObjectStorage(tmp_path)
    assert store.public_url(PUBLIC_BUCKET, "u1/p.png").endswith("/storage/profile-pictures/u1/p.png")
    with pytest.raises(InvalidInput):
        store.public_url(PRIVATE_BUCKET, "u1/doc.png")


def test_validate_upload_types():
    assert validate_upload(b"x", "image/png", IMAGE_TYPES, "Picture") == ".png"
    assert validate_upload(b"x", "application/pdf", PROOF_TYPES, "Proof") == ".pdf"
    with pytest.raises(InvalidInput):
        validate_upload(b"x", "application/pdf", IMAGE_TYPES, "Picture")
    with pytest.raises(InvalidInput):
        validate_upload(b"", "image/png", IMAGE_TYPES, "Picture")


def test_rate_limiter_window():
    limiter = InMemoryRateLimiter()
    assert limiter.check("k", limit=2, window_seconds=60).allowed
    assert limiter.check("k", limit=2, window_seconds=60).allowed
    blocked = limiter.check("k", limit=2, window_seconds=60)
    assert not blocked.allowed
    assert blocked.retry_after_seconds >= 1
    assert limiter.check("other", limit=2, window_seconds=60).allowed

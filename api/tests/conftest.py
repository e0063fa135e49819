"""Shared fixtures: a throwaway SQLite database built from the models."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import insert
from sqlalchemy.orm import sessionmaker

from rishta import models, repo
from rishta.auth import security
from rishta.database import Base, build_engine
from rishta.services import contacts, directory, profiles, proposals, quota, storage
from rishta.services.rate_limit import limiter

SESSION_MODULES = (repo, quota, proposals, contacts, directory, profiles)


@pytest.fixture(autouse=True)
def _isolated_limits(monkeypatch):
    monkeypatch.setattr(security, "JWT_SECRET", "test-secret")
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def session_factory(tmp_path, monkeypatch):
    engine = build_engine(f"sqlite:///{tmp_path / 'rishta.db'}")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    for module in SESSION_MODULES:
        monkeypatch.setattr(module, "SessionLocal", factory)
    monkeypatch.setattr(storage.storage, "root", tmp_path / "storage")
    yield factory
    engine.dispose()


@pytest.fixture
def make_user(session_factory):
    counter = {"n": 0}

    def _make(full_name: str = "Member", gender: str = "female", approved: bool = True, blocked: bool = False, **fields):
        counter["n"] += 1
        user = repo.create_member(f"member{counter['n']}@example.com", "x", full_name=full_name, gender=gender)
        if fields:
            repo.update_profile(str(user["id"]), fields)
        repo.set_profile_flag(str(user["id"]), "approved", approved)
        repo.set_profile_flag(str(user["id"]), "blocked", blocked)
        return str(user["id"])

    return _make


@pytest.fixture
def package_row(session_factory):
    return repo.create_package(name="Standard", price_pkr=3000, proposals_count=15, validity_days=90)


@pytest.fixture
def grant_quota(session_factory, package_row):
    """Insert an approved ledger row directly, bypassing the payment review."""

    def _grant(user_id: str, remaining: int, expires_in: timedelta = timedelta(days=30), status: str = "approved"):
        row_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        with session_factory() as db:
            db.execute(
                insert(models.UserPackage.__table__).values(
                    id=row_id,
                    user_id=user_id,
                    package_id=package_row["id"],
                    proposals_remaining=remaining,
                    payment_status=status,
                    expires_at=now + expires_in,
                    created_at=now,
                )
            )
            db.commit()
        return row_id

    return _grant

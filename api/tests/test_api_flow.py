import pytest

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

import rishta.main as m
from rishta import repo
from rishta.routes import auth as auth_routes

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture
def client(session_factory, monkeypatch):
    monkeypatch.setattr(m, "SessionLocal", session_factory)
    monkeypatch.setattr(auth_routes, "SessionLocal", session_factory)
    return TestClient(m.app)


def _register(client, email: str, full_name: str = "Member", gender: str = "female") -> dict:
    res = client.post(
        "/auth/register",
        json={"email": email, "password": "verysecurepw", "full_name": full_name, "gender": gender},
        headers={"X-Auth-Mode": "bearer"},
    )
    assert res.status_code == 201, res.text
    body = res.json()
    return {"id": body["user"]["id"], "headers": {"Authorization": f"Bearer {body['access_token']}"}}


def _admin(client) -> dict:
    admin = _register(client, "admin@example.com", "Admin", "male")
    repo.grant_role(admin["id"], "admin")
    return admin


def _approved_member(client, admin: dict, email: str, full_name: str, gender: str) -> dict:
    member = _register(client, email, full_name, gender)
    res = client.post(f"/admin/profiles/{member['id']}/approve", headers=admin["headers"])
    assert res.status_code == 200, res.text
    return member


def _buy_and_approve(client, admin: dict, member: dict) -> None:
    packages = client.get("/packages", headers=member["headers"]).json()
    basic = next(p for p in packages if p["name"] == "Basic")
    res = client.post(
        f"/packages/{basic['id']}/purchase",
        files={"payment_proof": ("receipt.png", PNG, "image/png")},
        headers=member["headers"],
    )
    assert res.status_code == 201, res.text
    row_id = res.json()["user_package"]["id"]
    res = client.post(f"/admin/payments/{row_id}/approve", headers=admin["headers"])
    assert res.status_code == 200, res.text


def test_register_login_me_and_role(client):
    member = _register(client, "Ayesha@Example.com", "Ayesha Khan")

    me = client.get("/auth/me", headers=member["headers"])
    assert me.status_code == 200
    assert me.json()["user"]["email"] == "ayesha@example.com"
    assert me.json()["profile"]["full_name"] == "Ayesha Khan"
    assert me.json()["profile"]["approved"] is False

    role = client.get("/auth/role", headers=member["headers"]).json()
    assert role == {"role": "user", "is_admin": False}

    login = client.post(
        "/auth/login",
        json={"email": "ayesha@example.com", "password": "verysecurepw"},
        headers={"X-Auth-Mode": "bearer"},
    )
    assert login.status_code == 200
    assert login.json()["token_type"] == "bearer"

    bad = client.post("/auth/login", json={"email": "ayesha@example.com", "password": "wrong-password"})
    assert bad.status_code == 401


def test_duplicate_registration_conflicts(client):
    _register(client, "ayesha@example.com")
    res = client.post(
        "/auth/register",
        json={"email": "AYESHA@example.com", "password": "verysecurepw", "full_name": "Again", "gender": "female"},
    )
    assert res.status_code == 409


def test_invalid_registration_uses_error_shape(client):
    res = client.post(
        "/auth/register",
        json={"email": "ayesha@example.com", "password": "short", "full_name": "Ayesha", "gender": "female"},
    )
    assert res.status_code == 400
    assert res.json()["success"] is False
    assert res.json()["error"] == "invalid_input"


def test_cookie_session(client, monkeypatch):
    monkeypatch.setattr(auth_routes, "DEV_MODE", True)
    res = client.post(
        "/auth/register",
        json={"email": "cookie@example.com", "password": "verysecurepw", "full_name": "Cookie", "gender": "male"},
    )
    assert res.status_code == 201
    assert "access_token" not in res.json()
    assert client.get("/auth/me").status_code == 200

    assert client.post("/auth/logout").status_code == 200
    client.cookies.clear()
    assert client.get("/auth/me").status_code == 401


def test_unauthenticated_requests_are_rejected(client):
    assert client.get("/profiles").status_code == 401
    assert client.post("/proposals", json={"receiver_id": "x"}).status_code == 401


def test_admin_routes_require_admin(client):
    member = _register(client, "member@example.com")
    assert client.get("/admin/profiles", headers=member["headers"]).status_code == 403
    assert client.post(f"/admin/profiles/{member['id']}/approve", headers=member["headers"]).status_code == 403


def test_proposal_and_contact_flow(client):
    admin = _admin(client)
    repo.create_package(name="Basic", price_pkr=1500, proposals_count=5, validity_days=30)
    ayesha = _approved_member(client, admin, "ayesha@example.com", "Ayesha", "female")
    bilal = _approved_member(client, admin, "bilal@example.com", "Bilal", "male")
    client.put(
        "/users/me/profile",
        json={"full_name": "Bilal", "gender": "male", "city": "Lahore", "phone": "+92 321 2222222"},
        headers=bilal["headers"],
    )

    no_quota = client.post("/proposals", json={"receiver_id": bilal["id"]}, headers=ayesha["headers"])
    assert no_quota.status_code == 402
    assert no_quota.json()["error"] == "no_quota"

    _buy_and_approve(client, admin, ayesha)
    assert client.get("/users/me/quota", headers=ayesha["headers"]).json()["remaining"] == 5

    sent = client.post("/proposals", json={"receiver_id": bilal["id"]}, headers=ayesha["headers"])
    assert sent.status_code == 201, sent.text
    assert sent.json()["remaining"] == 4

    again = client.post("/proposals", json={"receiver_id": ayesha["id"]}, headers=bilal["headers"])
    assert again.status_code == 409
    assert again.json()["error"] == "already_exists"
    assert again.json()["status"] == "pending"

    hidden = client.get(f"/profiles/{bilal['id']}/contact", headers=ayesha["headers"])
    assert hidden.json() == {"contact": None}

    badge = client.get(f"/proposals/with/{ayesha['id']}", headers=bilal["headers"]).json()
    assert badge["can_respond"] is True

    accepted = client.post(f"/proposals/{ayesha['id']}/respond", json={"accept": True}, headers=bilal["headers"])
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "accepted"

    twice = client.post(f"/proposals/{ayesha['id']}/respond", json={"accept": False}, headers=bilal["headers"])
    assert twice.status_code == 409
    assert twice.json()["error"] == "already_resolved"

    contact = client.get(f"/profiles/{bilal['id']}/contact", headers=ayesha["headers"]).json()
    assert contact["contact"]["phone"] == "+92 321 2222222"

    listing = client.get("/profiles", headers=ayesha["headers"]).json()
    assert [p["full_name"] for p in listing["profiles"]] == ["Bilal"]
    assert listing["profiles"][0]["proposal"]["status"] == "accepted"
    assert "phone" not in listing["profiles"][0]

    audit = client.get("/admin/audit", headers=admin["headers"]).json()
    assert {"profile_approve", "payment_approve"} <= {e["action"] for e in audit["events"]}


def test_self_proposal_error_body(client):
    admin = _admin(client)
    member = _approved_member(client, admin, "ayesha@example.com", "Ayesha", "female")
    res = client.post("/proposals", json={"receiver_id": member["id"]}, headers=member["headers"])
    assert res.status_code == 400
    assert res.json() == {"success": False, "error": "self_proposal", "message": "You cannot send a proposal to yourself"}


def test_blocked_profile_leaves_directory(client):
    admin = _admin(client)
    viewer = _approved_member(client, admin, "ayesha@example.com", "Ayesha", "female")
    target = _approved_member(client, admin, "bilal@example.com", "Bilal", "male")

    assert client.get(f"/profiles/{target['id']}", headers=viewer["headers"]).status_code == 200
    client.post(f"/admin/profiles/{target['id']}/block", headers=admin["headers"])
    missing = client.get(f"/profiles/{target['id']}", headers=viewer["headers"])
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "error": "not_found", "message": "Profile not found"}
    assert client.get("/profiles", headers=viewer["headers"]).json()["total"] == 0


def test_picture_and_identity_documents(client):
    admin = _admin(client)
    member = _register(client, "ayesha@example.com", "Ayesha")

    pic = client.post(
        "/users/me/profile/picture",
        files={"picture": ("me.png", PNG, "image/png")},
        headers=member["headers"],
    )
    assert pic.status_code == 200, pic.text
    assert "/storage/profile-pictures/" in pic.json()["profile_picture_url"]

    wrong = client.post(
        "/users/me/profile/picture",
        files={"picture": ("me.gif", b"GIF89a", "image/gif")},
        headers=member["headers"],
    )
    assert wrong.status_code == 400

    docs = client.post(
        "/users/me/identity-documents",
        data={"id_type": "cnic"},
        files={"id_document": ("cnic.png", PNG, "image/png"), "selfie": ("selfie.png", PNG, "image/png")},
        headers=member["headers"],
    )
    assert docs.status_code == 200, docs.text
    assert docs.json()["verified"] is False

    profile = repo.get_profile_by_user_id(member["id"])
    download = client.get(f"/admin/documents/{profile['id_document_ref']}", headers=admin["headers"])
    assert download.status_code == 200
    assert download.content == PNG
    assert client.get(f"/admin/documents/{profile['id_document_ref']}", headers=member["headers"]).status_code == 403


def test_admin_package_management(client):
    admin = _admin(client)
    created = client.post(
        "/admin/packages",
        json={"name": "Gold", "price_pkr": 9000, "proposals_count": 60, "validity_days": 180},
        headers=admin["headers"],
    )
    assert created.status_code == 201, created.text
    package_id = created.json()["package"]["id"]

    bad = client.post("/admin/packages", json={"name": "Broken", "price_pkr": 100}, headers=admin["headers"])
    assert bad.status_code == 400

    retired = client.patch(f"/admin/packages/{package_id}", json={"is_active": False}, headers=admin["headers"])
    assert retired.json()["package"]["is_active"] is False
    assert client.get("/packages", headers=admin["headers"]).json() == []


def test_login_rate_limited(client):
    statuses = [
        client.post("/auth/login", json={"email": "nobody@example.com", "password": "whatever1"}).status_code
        for _ in range(31)
    ]
    assert statuses[:30] == [401] * 30
    assert statuses[30] == 429


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_profile_update_keeps_omitted_fields(client):
    member = _register(client, "ayesha@example.com", "Ayesha")
    client.put(
        "/users/me/profile",
        json={"full_name": "Ayesha", "gender": "female", "city": "Karachi", "phone": "+92 300 1111111", "bio": "Hello"},
        headers=member["headers"],
    )

    res = client.put(
        "/users/me/profile",
        json={"full_name": "Ayesha Khan", "gender": "female", "city": "Lahore", "bio": None},
        headers=member["headers"],
    )
    assert res.status_code == 200, res.text
    profile = res.json()["profile"]
    assert profile["city"] == "Lahore"
    assert profile["phone"] == "+92 300 1111111"
    assert profile["bio"] is None


def test_audit_filter_applies_before_limit(client):
    admin = _admin(client)
    repo.create_admin_audit_event("profile_approve", admin["id"], {"user_id": "u1"})
    for i in range(59):
        repo.create_admin_audit_event("document_view", admin["id"], {"ref": f"doc-{i}"})

    res = client.get("/admin/audit", params={"action": "profile_approve", "limit": 50}, headers=admin["headers"])
    assert res.status_code == 200
    assert [e["action"] for e in res.json()["events"]] == ["profile_approve"]


def test_database_outage_maps_to_transient_io(client):
    from sqlalchemy.exc import OperationalError

    from rishta.auth.deps import get_current_user

    def _unavailable():
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    m.app.dependency_overrides[get_current_user] = _unavailable
    try:
        res = client.get("/profiles")
    finally:
        m.app.dependency_overrides.clear()

    assert res.status_code == 503
    assert res.json()["success"] is False
    assert res.json()["error"] == "transient_io"

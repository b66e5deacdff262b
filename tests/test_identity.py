from __future__ import annotations

from collections.abc import Generator
from datetime import timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlmodel import Session, SQLModel, create_engine, select

from app import main as app_main
from app.domain.models import AuditLog, EventRecord, Tenant, TenantStatus, User, UserStatus
from app.domain.permissions import Role
from app.infra import audit, db, events
from app.infra.auth import issue_access_token
from app.services.identity_service import IdentityService


@pytest.fixture()
def identity_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "identity_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    monkeypatch.setattr(audit, "engine", test_engine)
    monkeypatch.setattr(events, "engine", test_engine)
    client = TestClient(app_main.app)
    yield client
    client.close()


def _auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _signup(client: TestClient, email: str, password: str = "school-pass") -> dict:
    response = client.post(
        "/api/auth/school/signup",
        json={
            "school_name": f"School {email}",
            "owner_name": "Asha Rao",
            "email": email,
            "phone": "9000000000",
            "address": "1 Main Road",
            "city": "Pune",
            "password": password,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


def _login(client: TestClient, email: str, password: str) -> str:
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["access_token"]


def _create_user(client: TestClient, admin_token: str, email: str, role: Role) -> dict:
    response = client.post(
        "/api/users",
        json={
            "email": email,
            "password": "member-pass",
            "first_name": "Member",
            "last_name": role.value,
            "role": role.value,
        },
        headers=_auth_header(admin_token),
    )
    assert response.status_code == 201, response.text
    return response.json()


def _set_tenant_status(tenant_id: str, status: TenantStatus) -> None:
    with Session(db.get_engine()) as session:
        tenant = session.get(Tenant, tenant_id)
        assert tenant is not None
        tenant.status = status
        session.add(tenant)
        session.commit()


def _latest_audit(tenant_id: str, action_prefix: str) -> AuditLog:
    with Session(db.get_engine(), expire_on_commit=False) as session:
        rows = list(session.exec(select(AuditLog).where(AuditLog.tenant_id == tenant_id)).all())
    matching = [row for row in rows if row.action.startswith(action_prefix)]
    assert matching
    return sorted(matching, key=lambda item: item.ts)[-1]


def test_signup_creates_trial_school_and_admin(identity_client: TestClient) -> None:
    body = _signup(identity_client, "Owner@Sunrise.Example")
    assert body["token_type"] == "bearer"
    assert body["school"]["status"] == "trial"
    assert body["school"]["email"] == "owner@sunrise.example"
    assert body["school"]["trial_ends_at"] is not None
    assert body["user"]["role"] == "admin"
    assert body["user"]["first_name"] == "Asha"
    assert "manage" in body["permissions"]["settings"]

    with Session(db.get_engine()) as session:
        recorded = session.exec(
            select(EventRecord).where(EventRecord.event_type == "tenant.bootstrapped")
        ).all()
    assert len(recorded) == 1
    assert recorded[0].tenant_id == body["school"]["id"]

    entry = _latest_audit(body["school"]["id"], "tenant.bootstrap")
    assert entry.status_code == 201


def test_signup_duplicate_email_conflicts(identity_client: TestClient) -> None:
    _signup(identity_client, "dup@school.example")
    response = identity_client.post(
        "/api/auth/school/signup",
        json={
            "school_name": "Other",
            "owner_name": "Someone",
            "email": "DUP@school.example",
            "phone": "1",
            "address": "x",
            "password": "another-pass",
        },
    )
    assert response.status_code == 409
    assert response.json()["detail"]["kind"] == "tenant_already_exists"

    with Session(db.get_engine()) as session:
        admins = session.exec(select(User).where(User.role == Role.ADMIN)).all()
    assert len(admins) == 1


def test_signup_rolls_back_tenant_when_admin_insert_fails(
    identity_client: TestClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    first = _signup(identity_client, "first@school.example")
    existing_admin_id = first["user"]["id"]
    original_build_admin = IdentityService._build_admin

    def _colliding_admin(self: IdentityService, tenant: Tenant, payload) -> User:
        admin = original_build_admin(self, tenant, payload)
        admin.id = existing_admin_id
        return admin

    monkeypatch.setattr(IdentityService, "_build_admin", _colliding_admin)
    response = identity_client.post(
        "/api/auth/school/signup",
        json={
            "school_name": "Second",
            "owner_name": "Ravi",
            "email": "second@school.example",
            "phone": "1",
            "address": "x",
            "password": "second-pass",
        },
    )
    assert response.status_code == 409
    assert response.json()["detail"]["kind"] == "conflict"

    with Session(db.get_engine()) as session:
        assert session.exec(select(Tenant).where(Tenant.email == "second@school.example")).all() == []
        assert len(session.exec(select(Tenant)).all()) == 1
        assert len(session.exec(select(User)).all()) == 1

    monkeypatch.setattr(IdentityService, "_build_admin", original_build_admin)
    _signup(identity_client, "second@school.example")


def test_login_and_me(identity_client: TestClient) -> None:
    body = _signup(identity_client, "me@school.example")
    token = _login(identity_client, "ME@school.example", "school-pass")

    me = identity_client.get("/api/auth/me", headers=_auth_header(token))
    assert me.status_code == 200
    assert me.json()["user"]["id"] == body["user"]["id"]
    assert me.json()["school"]["id"] == body["school"]["id"]
    assert me.json()["user"]["last_login_at"] is not None

    perms = identity_client.get("/api/auth/permissions", headers=_auth_header(token))
    assert perms.status_code == 200
    assert perms.json()["role"] == "admin"
    assert perms.json()["tenant_id"] == body["school"]["id"]


def test_login_rejects_bad_password(identity_client: TestClient) -> None:
    _signup(identity_client, "badpass@school.example")
    response = identity_client.post(
        "/api/auth/login",
        json={"email": "badpass@school.example", "password": "wrong-pass"},
    )
    assert response.status_code == 401
    assert response.json()["detail"]["kind"] == "invalid_credentials"

    unknown = identity_client.post(
        "/api/auth/login",
        json={"email": "nobody@school.example", "password": "wrong-pass"},
    )
    assert unknown.status_code == 401


def test_login_needs_tenant_when_email_is_shared(identity_client: TestClient) -> None:
    school_a = _signup(identity_client, "a@shared.example")
    school_b = _signup(identity_client, "b@shared.example")
    for school in (school_a, school_b):
        admin_token = _login(identity_client, school["school"]["email"], "school-pass")
        _create_user(identity_client, admin_token, "parent@shared.example", Role.PARENT)

    ambiguous = identity_client.post(
        "/api/auth/login",
        json={"email": "parent@shared.example", "password": "member-pass"},
    )
    assert ambiguous.status_code == 409

    scoped = identity_client.post(
        "/api/auth/login",
        json={
            "email": "parent@shared.example",
            "password": "member-pass",
            "tenant_id": school_b["school"]["id"],
        },
    )
    assert scoped.status_code == 200
    assert scoped.json()["school"]["id"] == school_b["school"]["id"]


def test_missing_and_invalid_tokens(identity_client: TestClient) -> None:
    missing = identity_client.get("/api/auth/me")
    assert missing.status_code == 401
    assert missing.json()["detail"]["kind"] == "no_token"

    invalid = identity_client.get("/api/auth/me", headers=_auth_header("not-a-token"))
    assert invalid.status_code == 401
    assert invalid.json()["detail"]["kind"] == "invalid_token"
    assert invalid.headers["www-authenticate"] == "Bearer"


def test_expired_token_is_rejected(identity_client: TestClient) -> None:
    body = _signup(identity_client, "expired@school.example")
    token = issue_access_token(
        principal_id=body["user"]["id"],
        tenant_id=body["school"]["id"],
        role=Role.ADMIN,
        ttl=timedelta(0),
    )
    response = identity_client.get("/api/auth/me", headers=_auth_header(token))
    assert response.status_code == 401
    assert response.json()["detail"]["kind"] == "expired"


def test_suspended_school_blocks_valid_token(identity_client: TestClient) -> None:
    body = _signup(identity_client, "suspended@school.example")
    token = body["access_token"]
    _set_tenant_status(body["school"]["id"], TenantStatus.SUSPENDED)

    response = identity_client.get("/api/auth/me", headers=_auth_header(token))
    assert response.status_code == 403
    assert response.json()["detail"]["kind"] == "account_or_tenant_inactive"

    login = identity_client.post(
        "/api/auth/login",
        json={"email": "suspended@school.example", "password": "school-pass"},
    )
    assert login.status_code == 403
    assert "suspended" in login.json()["detail"]["message"]

    _set_tenant_status(body["school"]["id"], TenantStatus.ACTIVE)
    assert identity_client.get("/api/auth/me", headers=_auth_header(token)).status_code == 200


def test_inactive_user_is_blocked(identity_client: TestClient) -> None:
    body = _signup(identity_client, "inactive@school.example")
    admin_token = body["access_token"]
    teacher = _create_user(identity_client, admin_token, "teacher@inactive.example", Role.TEACHER)
    teacher_token = _login(identity_client, "teacher@inactive.example", "member-pass")

    deactivate = identity_client.patch(
        f"/api/users/{teacher['id']}",
        json={"status": UserStatus.INACTIVE.value},
        headers=_auth_header(admin_token),
    )
    assert deactivate.status_code == 200

    response = identity_client.get("/api/auth/me", headers=_auth_header(teacher_token))
    assert response.status_code == 403
    assert response.json()["detail"]["kind"] == "account_or_tenant_inactive"


def test_role_guard_denies_and_audits(identity_client: TestClient) -> None:
    body = _signup(identity_client, "guard@school.example")
    tenant_id = body["school"]["id"]
    _create_user(identity_client, body["access_token"], "teacher@guard.example", Role.TEACHER)
    teacher_token = _login(identity_client, "teacher@guard.example", "member-pass")

    response = identity_client.put(
        "/api/settings",
        json={"currency": "USD"},
        headers=_auth_header(teacher_token),
    )
    assert response.status_code == 403
    assert response.json()["detail"]["kind"] == "forbidden"

    entry = _latest_audit(tenant_id, "authz.denied")
    assert entry.status_code == 403
    assert entry.detail["result"]["outcome"] == "denied"
    assert entry.detail["who"]["role"] == "teacher"

    users = identity_client.get("/api/users", headers=_auth_header(teacher_token))
    assert users.status_code == 403


def test_parent_cannot_write_attendance(identity_client: TestClient) -> None:
    body = _signup(identity_client, "parentguard@school.example")
    _create_user(identity_client, body["access_token"], "parent@guard.example", Role.PARENT)
    parent_token = _login(identity_client, "parent@guard.example", "member-pass")

    listing = identity_client.get("/api/attendance", headers=_auth_header(parent_token))
    assert listing.status_code == 200

    write = identity_client.post(
        "/api/attendance",
        json={"student_id": "x", "class_id": "y", "day": "2026-10-18", "status": "present"},
        headers=_auth_header(parent_token),
    )
    assert write.status_code == 403


def test_users_are_tenant_isolated(identity_client: TestClient) -> None:
    school_a = _signup(identity_client, "iso-a@school.example")
    school_b = _signup(identity_client, "iso-b@school.example")
    teacher = _create_user(identity_client, school_a["access_token"], "t@iso.example", Role.TEACHER)

    cross = identity_client.get(f"/api/users/{teacher['id']}", headers=_auth_header(school_b["access_token"]))
    assert cross.status_code == 404
    assert cross.json()["detail"]["kind"] == "not_found"

    cross_delete = identity_client.delete(
        f"/api/users/{teacher['id']}",
        headers=_auth_header(school_b["access_token"]),
    )
    assert cross_delete.status_code == 404

    listing = identity_client.get("/api/users", headers=_auth_header(school_b["access_token"]))
    assert [item["email"] for item in listing.json()] == ["iso-b@school.example"]


def test_admin_cannot_delete_self(identity_client: TestClient) -> None:
    body = _signup(identity_client, "self@school.example")
    response = identity_client.delete(
        f"/api/users/{body['user']['id']}",
        headers=_auth_header(body["access_token"]),
    )
    assert response.status_code == 409


def test_profile_and_password_change(identity_client: TestClient) -> None:
    body = _signup(identity_client, "profile@school.example")
    token = body["access_token"]

    profile = identity_client.put(
        "/api/auth/profile",
        json={"first_name": "Meera", "phone": "9111111111"},
        headers=_auth_header(token),
    )
    assert profile.status_code == 200
    assert profile.json()["first_name"] == "Meera"
    assert profile.json()["last_name"] == "Rao"

    wrong = identity_client.put(
        "/api/auth/change-password",
        json={"current_password": "not-it-at-all", "new_password": "brand-new-pass"},
        headers=_auth_header(token),
    )
    assert wrong.status_code == 401

    changed = identity_client.put(
        "/api/auth/change-password",
        json={"current_password": "school-pass", "new_password": "brand-new-pass"},
        headers=_auth_header(token),
    )
    assert changed.status_code == 204
    _login(identity_client, "profile@school.example", "brand-new-pass")


def test_parent_delete_attendance_fails_on_role_before_permission(identity_client: TestClient) -> None:
    body = _signup(identity_client, "parentdelete@school.example")
    admin_headers = _auth_header(body["access_token"])
    class_id = identity_client.post("/api/classes", json={"name": "Grade 2"}, headers=admin_headers).json()["id"]
    student_id = identity_client.post(
        "/api/students",
        json={"first_name": "Ira", "last_name": "Das", "class_id": class_id},
        headers=admin_headers,
    ).json()["id"]
    marked = identity_client.post(
        "/api/attendance",
        json={"student_id": student_id, "class_id": class_id, "day": "2026-10-18", "status": "present"},
        headers=admin_headers,
    )
    assert marked.status_code == 201
    attendance_id = marked.json()["id"]

    _create_user(identity_client, body["access_token"], "parent@delete.example", Role.PARENT)
    parent_token = _login(identity_client, "parent@delete.example", "member-pass")
    response = identity_client.delete(f"/api/attendance/{attendance_id}", headers=_auth_header(parent_token))
    assert response.status_code == 403

    entry = _latest_audit(body["school"]["id"], "authz.denied")
    assert entry.detail["who"]["role"] == "parent"
    assert entry.detail["result"]["reason"].startswith("role not in")
    assert identity_client.get(f"/api/attendance/{attendance_id}", headers=admin_headers).status_code == 200


def test_signup_rejects_blank_owner_name(identity_client: TestClient) -> None:
    for field_name in ("owner_name", "school_name"):
        payload = {
            "school_name": "Blank Names",
            "owner_name": "Asha Rao",
            "email": f"{field_name}@blank.example",
            "phone": "1",
            "address": "x",
            "password": "school-pass",
        }
        payload[field_name] = "   "
        response = identity_client.post("/api/auth/school/signup", json=payload)
        assert response.status_code == 422

    with Session(db.get_engine()) as session:
        assert session.exec(select(Tenant)).all() == []

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlmodel import SQLModel, create_engine

from app import main as app_main
from app.infra import audit, db, events


@pytest.fixture()
def roster_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "roster_test.db"
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


def _admin_token(client: TestClient, email: str) -> str:
    response = client.post(
        "/api/auth/school/signup",
        json={
            "school_name": email,
            "owner_name": "Owner",
            "email": email,
            "phone": "1",
            "address": "x",
            "password": "school-pass",
        },
    )
    assert response.status_code == 201
    return response.json()["access_token"]


def _teacher_token(client: TestClient, admin_token: str, email: str) -> str:
    created = client.post(
        "/api/users",
        json={
            "email": email,
            "password": "teacher-pass",
            "first_name": "T",
            "last_name": "One",
            "role": "teacher",
        },
        headers=_auth_header(admin_token),
    )
    assert created.status_code == 201
    login = client.post("/api/auth/login", json={"email": email, "password": "teacher-pass"})
    assert login.status_code == 200
    return login.json()["access_token"]


def _create_class(client: TestClient, token: str, name: str, section: str = "A") -> str:
    response = client.post(
        "/api/classes",
        json={"name": name, "section": section},
        headers=_auth_header(token),
    )
    assert response.status_code == 201, response.text
    return response.json()["id"]


def _create_student(client: TestClient, token: str, class_id: str, first_name: str = "Kiran") -> str:
    response = client.post(
        "/api/students",
        json={"first_name": first_name, "last_name": "Shah", "class_id": class_id},
        headers=_auth_header(token),
    )
    assert response.status_code == 201, response.text
    return response.json()["id"]


def test_class_crud_and_duplicate(roster_client: TestClient) -> None:
    token = _admin_token(roster_client, "classes@school.example")
    class_id = _create_class(roster_client, token, "Grade 1")

    duplicate = roster_client.post(
        "/api/classes",
        json={"name": "Grade 1", "section": "A"},
        headers=_auth_header(token),
    )
    assert duplicate.status_code == 409
    _create_class(roster_client, token, "Grade 1", "B")

    patched = roster_client.patch(
        f"/api/classes/{class_id}",
        json={"capacity": 40},
        headers=_auth_header(token),
    )
    assert patched.status_code == 200
    assert patched.json()["capacity"] == 40

    listing = roster_client.get("/api/classes", headers=_auth_header(token))
    assert [(item["name"], item["section"]) for item in listing.json()] == [("Grade 1", "A"), ("Grade 1", "B")]


def test_teacher_reads_but_cannot_create_classes(roster_client: TestClient) -> None:
    admin = _admin_token(roster_client, "teach@school.example")
    teacher = _teacher_token(roster_client, admin, "teacher@teach.example")
    _create_class(roster_client, admin, "Grade 2")

    assert roster_client.get("/api/classes", headers=_auth_header(teacher)).status_code == 200
    denied = roster_client.post(
        "/api/classes",
        json={"name": "Grade 9"},
        headers=_auth_header(teacher),
    )
    assert denied.status_code == 403


def test_class_with_students_cannot_be_deleted(roster_client: TestClient) -> None:
    token = _admin_token(roster_client, "delete@school.example")
    class_id = _create_class(roster_client, token, "Grade 3")
    student_id = _create_student(roster_client, token, class_id)

    blocked = roster_client.delete(f"/api/classes/{class_id}", headers=_auth_header(token))
    assert blocked.status_code == 409
    assert blocked.json()["detail"]["message"] == "class still has students"

    assert roster_client.delete(f"/api/students/{student_id}", headers=_auth_header(token)).status_code == 204
    assert roster_client.delete(f"/api/classes/{class_id}", headers=_auth_header(token)).status_code == 204


def test_students_cannot_reference_other_school_classes(roster_client: TestClient) -> None:
    token_a = _admin_token(roster_client, "roster-a@school.example")
    token_b = _admin_token(roster_client, "roster-b@school.example")
    class_a = _create_class(roster_client, token_a, "Grade 4")
    class_b = _create_class(roster_client, token_b, "Grade 4")

    foreign = roster_client.post(
        "/api/students",
        json={"first_name": "X", "last_name": "Y", "class_id": class_a},
        headers=_auth_header(token_b),
    )
    assert foreign.status_code == 404

    student_b = _create_student(roster_client, token_b, class_b)
    move = roster_client.patch(
        f"/api/students/{student_b}",
        json={"class_id": class_a},
        headers=_auth_header(token_b),
    )
    assert move.status_code == 404

    cross_read = roster_client.get(f"/api/students/{student_b}", headers=_auth_header(token_a))
    assert cross_read.status_code == 404


def test_student_list_filters(roster_client: TestClient) -> None:
    token = _admin_token(roster_client, "filters@school.example")
    class_one = _create_class(roster_client, token, "Grade 5")
    class_two = _create_class(roster_client, token, "Grade 6")
    first = _create_student(roster_client, token, class_one, "Anu")
    _create_student(roster_client, token, class_two, "Bala")

    graduated = roster_client.patch(
        f"/api/students/{first}",
        json={"status": "graduated"},
        headers=_auth_header(token),
    )
    assert graduated.status_code == 200

    by_class = roster_client.get(
        "/api/students",
        params={"class_id": class_two},
        headers=_auth_header(token),
    )
    assert [item["first_name"] for item in by_class.json()] == ["Bala"]

    by_status = roster_client.get(
        "/api/students",
        params={"status": "graduated"},
        headers=_auth_header(token),
    )
    assert [item["id"] for item in by_status.json()] == [first]

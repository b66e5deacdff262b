from __future__ import annotations

import pytest

from app.domain.permissions import (
    Action,
    Resource,
    Role,
    allowed_actions,
    has_permission,
    permission_table,
    permissions_for,
)


@pytest.mark.parametrize(
    ("role", "resource", "action", "expected"),
    [
        (Role.ADMIN, Resource.SETTINGS, Action.UPDATE, True),
        (Role.ADMIN, Resource.REPORTS, Action.DELETE, True),
        (Role.TEACHER, Resource.ATTENDANCE, Action.CREATE, True),
        (Role.TEACHER, Resource.ATTENDANCE, Action.DELETE, False),
        (Role.TEACHER, Resource.SETTINGS, Action.UPDATE, False),
        (Role.TEACHER, Resource.SETTINGS, Action.READ, False),
        (Role.PARENT, Resource.ATTENDANCE, Action.READ, True),
        (Role.PARENT, Resource.ATTENDANCE, Action.CREATE, False),
        (Role.PARENT, Resource.TEACHERS, Action.READ, False),
    ],
)
def test_has_permission_matrix(role: Role, resource: Resource, action: Action, expected: bool) -> None:
    assert has_permission(role, resource, action) is expected


def test_manage_grants_every_action_on_resource() -> None:
    assert Action.MANAGE in allowed_actions(Role.ADMIN, Resource.REPORTS)
    assert Action.DELETE not in allowed_actions(Role.ADMIN, Resource.REPORTS)
    assert has_permission(Role.ADMIN, Resource.REPORTS, Action.DELETE)


def test_manage_implies_every_action_for_all_roles() -> None:
    for role in Role:
        for resource in Resource:
            if has_permission(role, resource, Action.MANAGE):
                assert all(has_permission(role, resource, action) for action in Action)


def test_unknown_values_are_denied() -> None:
    assert has_permission("janitor", "students", "read") is False
    assert has_permission("admin", "lunch_menu", "read") is False
    assert has_permission("admin", "students", "teleport") is False
    assert allowed_actions("janitor", "students") == frozenset()
    assert permissions_for("janitor") == frozenset()


def test_string_values_are_accepted() -> None:
    assert has_permission("teacher", "attendance", "update")
    assert (Resource.FEES, Action.READ) in permissions_for("parent")


def test_permission_table_is_sorted_and_complete() -> None:
    table = permission_table(Role.PARENT)
    assert table == {
        "announcements": ["read"],
        "attendance": ["read"],
        "dashboard": ["read"],
        "fees": ["read"],
        "students": ["read"],
    }
    assert permission_table(Role.TEACHER)["attendance"] == ["create", "read", "update"]
    assert "users" not in permission_table(Role.TEACHER)

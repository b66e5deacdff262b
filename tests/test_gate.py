from __future__ import annotations

import logging

import pytest

from app.api.deps import check_authenticated, check_permission, check_role, guard
from app.domain.errors import ForbiddenError, UnauthenticatedError
from app.domain.permissions import Action, Resource, Role
from app.infra.tenant import Principal

TEACHER = Principal.build("teacher-1", "tenant-a", Role.TEACHER)


def test_check_authenticated_rejects_missing_principal() -> None:
    with pytest.raises(UnauthenticatedError):
        check_authenticated(None)
    assert check_authenticated(TEACHER) is TEACHER


def test_check_role() -> None:
    check_role(TEACHER, {Role.ADMIN, Role.TEACHER})
    with pytest.raises(ForbiddenError):
        check_role(TEACHER, {Role.ADMIN})


def test_teacher_settings_update_denied_attendance_create_allowed(caplog: pytest.LogCaptureFixture) -> None:
    check_permission(TEACHER, Resource.ATTENDANCE, [Action.CREATE])
    with caplog.at_level(logging.WARNING, logger="app.infra.audit"):
        with pytest.raises(ForbiddenError):
            check_permission(TEACHER, Resource.SETTINGS, [Action.UPDATE])
    assert any(
        "authz.denied principal_id=teacher-1 role=teacher resource=settings action=update" in record.getMessage()
        for record in caplog.records
    )


def test_any_permission_passes_when_one_action_allowed() -> None:
    check_permission(TEACHER, Resource.ATTENDANCE, [Action.DELETE, Action.UPDATE])
    with pytest.raises(ForbiddenError):
        check_permission(TEACHER, Resource.ATTENDANCE, [Action.DELETE])


def test_guard_needs_actions_for_resource() -> None:
    with pytest.raises(ValueError):
        guard(resource=Resource.STUDENTS)

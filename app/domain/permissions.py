from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    ADMIN = "admin"
    TEACHER = "teacher"
    PARENT = "parent"


class Resource(StrEnum):
    STUDENTS = "students"
    TEACHERS = "teachers"
    CLASSES = "classes"
    ATTENDANCE = "attendance"
    FEES = "fees"
    ANNOUNCEMENTS = "announcements"
    REPORTS = "reports"
    SETTINGS = "settings"
    DASHBOARD = "dashboard"
    USERS = "users"


class Action(StrEnum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE = "manage"


Permission = tuple[Resource, Action]

_CRUD = frozenset({Action.CREATE, Action.READ, Action.UPDATE, Action.DELETE, Action.MANAGE})
_READ = frozenset({Action.READ})

ROLE_PERMISSIONS: dict[Role, dict[Resource, frozenset[Action]]] = {
    Role.ADMIN: {
        Resource.STUDENTS: _CRUD,
        Resource.TEACHERS: _CRUD,
        Resource.CLASSES: _CRUD,
        Resource.ATTENDANCE: _CRUD,
        Resource.FEES: _CRUD,
        Resource.ANNOUNCEMENTS: _CRUD,
        Resource.REPORTS: frozenset({Action.READ, Action.MANAGE}),
        Resource.SETTINGS: frozenset({Action.READ, Action.UPDATE, Action.MANAGE}),
        Resource.DASHBOARD: frozenset({Action.READ, Action.MANAGE}),
        Resource.USERS: _CRUD,
    },
    Role.TEACHER: {
        Resource.STUDENTS: _READ,
        Resource.TEACHERS: _READ,
        Resource.CLASSES: _READ,
        Resource.ATTENDANCE: frozenset({Action.CREATE, Action.READ, Action.UPDATE}),
        Resource.FEES: _READ,
        Resource.ANNOUNCEMENTS: _READ,
        Resource.REPORTS: _READ,
        Resource.DASHBOARD: _READ,
    },
    Role.PARENT: {
        Resource.STUDENTS: _READ,
        Resource.ATTENDANCE: _READ,
        Resource.FEES: _READ,
        Resource.ANNOUNCEMENTS: _READ,
        Resource.DASHBOARD: _READ,
    },
}


def _coerce(enum_cls: type[StrEnum], value: object) -> StrEnum | None:
    try:
        return enum_cls(value)
    except ValueError:
        return None


def allowed_actions(role: str, resource: str) -> frozenset[Action]:
    role_key = _coerce(Role, role)
    resource_key = _coerce(Resource, resource)
    if role_key is None or resource_key is None:
        return frozenset()
    return ROLE_PERMISSIONS.get(role_key, {}).get(resource_key, frozenset())


def permissions_for(role: str) -> frozenset[Permission]:
    role_key = _coerce(Role, role)
    if role_key is None:
        return frozenset()
    return frozenset(
        (resource, action)
        for resource, actions in ROLE_PERMISSIONS.get(role_key, {}).items()
        for action in actions
    )


def has_permission(role: str, resource: str, action: str) -> bool:
    if _coerce(Action, action) is None:
        return False
    actions = allowed_actions(role, resource)
    return action in actions or Action.MANAGE in actions


def permission_table(role: str) -> dict[str, list[str]]:
    """Resource -> sorted action names, the shape returned to clients."""
    table: dict[str, list[str]] = {}
    for resource, action in permissions_for(role):
        table.setdefault(resource.value, []).append(action.value)
    return {resource: sorted(actions) for resource, actions in sorted(table.items())}

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

from sqlmodel import Session, SQLModel, select
from sqlmodel.sql.expression import SelectOfScalar

from app.domain.errors import NotFoundError
from app.domain.permissions import Permission, Role, permissions_for

ModelT = TypeVar("ModelT", bound=SQLModel)

IMMUTABLE_FIELDS = frozenset({"id", "tenant_id"})


@dataclass(frozen=True)
class Principal:
    """Resolved caller, built once per request by the principal resolver."""

    principal_id: str
    tenant_id: str
    role: Role
    permissions: frozenset[Permission] = field(default_factory=frozenset)

    @classmethod
    def build(cls, principal_id: str, tenant_id: str, role: str) -> Principal:
        role_value = Role(role)
        return cls(
            principal_id=principal_id,
            tenant_id=tenant_id,
            role=role_value,
            permissions=permissions_for(role_value),
        )


def scope_filter(principal: Principal) -> dict[str, str]:
    return {"tenant_id": principal.tenant_id}


class TenantScope:
    """Query builder for tenant-owned tables.

    There is no constructor that takes a bare tenant id: a scope only exists
    for a resolved principal, so every statement built here carries the
    tenant predicate.
    """

    __slots__ = ("_principal",)

    def __init__(self, principal: Principal) -> None:
        if not isinstance(principal, Principal):
            raise TypeError("TenantScope requires a resolved Principal")
        self._principal = principal

    @property
    def principal(self) -> Principal:
        return self._principal

    @property
    def tenant_id(self) -> str:
        return self._principal.tenant_id

    def filter(self) -> dict[str, str]:
        return scope_filter(self._principal)

    def where(self, statement: SelectOfScalar[ModelT], model: type[ModelT]) -> SelectOfScalar[ModelT]:
        return statement.where(_tenant_column(model) == self.tenant_id)

    def select(self, model: type[ModelT]) -> SelectOfScalar[ModelT]:
        return self.where(select(model), model)

    def find(self, session: Session, model: type[ModelT], entity_id: str) -> ModelT | None:
        statement = self.select(model).where(model.id == entity_id)  # type: ignore[attr-defined]
        return session.exec(statement).first()

    def get(self, session: Session, model: type[ModelT], entity_id: str, label: str | None = None) -> ModelT:
        entity = self.find(session, model, entity_id)
        if entity is None:
            raise NotFoundError(f"{label or model.__name__.lower()} not found")
        return entity

    def new(self, model: type[ModelT], **fields: Any) -> ModelT:
        if "tenant_id" in fields:
            raise ValueError("tenant_id is assigned by the scope")
        return model(tenant_id=self.tenant_id, **fields)

    def assign(self, entity: SQLModel, changes: Mapping[str, Any]) -> None:
        if getattr(entity, "tenant_id", None) != self.tenant_id:
            raise NotFoundError(f"{type(entity).__name__.lower()} not found")
        for key, value in changes.items():
            if key in IMMUTABLE_FIELDS:
                continue
            setattr(entity, key, value)


def _tenant_column(model: type[SQLModel]) -> Any:
    column = getattr(model, "tenant_id", None)
    if column is None:
        raise TypeError(f"{model.__name__} is not tenant-scoped")
    return column

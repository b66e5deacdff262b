from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Generic, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, SQLModel

from app.domain.errors import UpsertConflictError
from app.domain.models import now_utc
from app.infra.db import get_engine
from app.infra.tenant import TenantScope

log = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=SQLModel)


class CreateOutcome(StrEnum):
    CREATED = "created"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class CreateResult(Generic[ModelT]):
    outcome: CreateOutcome
    record: ModelT | None = None


@dataclass(frozen=True)
class UpsertResult(Generic[ModelT]):
    record: ModelT
    created: bool


class KeyedUpsert(Generic[ModelT]):
    """First touch creates, later touches update, for rows keyed by
    ``(tenant_id, *key_fields)``.

    The model must carry a unique constraint over exactly those columns; the
    constraint is what makes the single retry after a lost create race
    sufficient.
    """

    def __init__(self, model: type[ModelT], key_fields: tuple[str, ...]) -> None:
        self.model = model
        self.key_fields = key_fields

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _check_key(self, key: Mapping[str, Any]) -> None:
        if set(key) != set(self.key_fields):
            raise ValueError(f"expected key fields {self.key_fields}, got {tuple(key)}")

    def find(self, session: Session, scope: TenantScope, key: Mapping[str, Any]) -> ModelT | None:
        self._check_key(key)
        statement = scope.select(self.model)
        for name in self.key_fields:
            statement = statement.where(getattr(self.model, name) == key[name])
        return session.exec(statement).first()

    def try_create(
        self,
        scope: TenantScope,
        key: Mapping[str, Any],
        fields: Mapping[str, Any],
    ) -> CreateResult[ModelT]:
        self._check_key(key)
        with self._session() as session:
            record = scope.new(self.model, **{**fields, **key})
            session.add(record)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return CreateResult(outcome=CreateOutcome.CONFLICT)
            session.refresh(record)
            return CreateResult(outcome=CreateOutcome.CREATED, record=record)

    def try_update(
        self,
        scope: TenantScope,
        key: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> ModelT | None:
        with self._session() as session:
            record = self.find(session, scope, key)
            if record is None:
                return None
            scope.assign(record, {name: value for name, value in changes.items() if name not in key})
            if hasattr(record, "updated_at"):
                record.updated_at = now_utc()  # type: ignore[attr-defined]
            session.add(record)
            session.commit()
            session.refresh(record)
            return record

    def upsert(
        self,
        scope: TenantScope,
        key: Mapping[str, Any],
        changes: Mapping[str, Any],
        *,
        create_only: Mapping[str, Any] | None = None,
    ) -> UpsertResult[ModelT]:
        """Apply ``changes`` to the row for ``key``, creating it if missing.

        ``create_only`` holds fields written on creation but never on update
        (e.g. who first created the row).
        """
        record = self.try_update(scope, key, changes)
        if record is not None:
            return UpsertResult(record=record, created=False)

        result = self.try_create(scope, key, {**(create_only or {}), **changes})
        if result.outcome is CreateOutcome.CREATED and result.record is not None:
            return UpsertResult(record=result.record, created=True)

        log.info(
            "upsert.conflict_retry model=%s tenant_id=%s key=%s",
            self.model.__name__,
            scope.tenant_id,
            dict(key),
        )
        record = self.try_update(scope, key, changes)
        if record is None:
            raise UpsertConflictError(
                f"{self.model.__name__} create collided but no row exists for key {dict(key)}"
            )
        return UpsertResult(record=record, created=False)

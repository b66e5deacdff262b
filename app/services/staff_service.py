from __future__ import annotations

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from app.domain.errors import ConflictError
from app.domain.models import (
    SchoolClass,
    Teacher,
    TeacherCreate,
    TeacherStatus,
    TeacherUpdate,
    now_utc,
)
from app.infra.db import get_engine
from app.infra.events import event_bus
from app.infra.tenant import TenantScope
from app.services.identity_service import normalize_email
from app.services.paging import Page, paginate


class TeacherService:
    """Teacher profiles. Login accounts live in ``users``; a profile is what
    classes point at through ``teacher_id``."""

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def create_teacher(self, scope: TenantScope, payload: TeacherCreate) -> Teacher:
        fields = payload.model_dump(exclude_none=True)
        fields["email"] = normalize_email(payload.email)
        with self._session() as session:
            teacher = scope.new(Teacher, **fields)
            session.add(teacher)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("teacher email already exists in school") from exc
            session.refresh(teacher)
        event_bus.publish_dict(
            "teacher.created",
            scope.tenant_id,
            {"teacher_id": teacher.id},
            actor_id=scope.principal.principal_id,
        )
        return teacher

    def list_teachers(
        self,
        scope: TenantScope,
        *,
        status: TeacherStatus | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> Page[Teacher]:
        with self._session() as session:
            statement = scope.select(Teacher)
            if status is not None:
                statement = statement.where(Teacher.status == status)
            if search:
                pattern = f"%{search.strip()}%"
                statement = statement.where(
                    or_(
                        col(Teacher.first_name).ilike(pattern),
                        col(Teacher.last_name).ilike(pattern),
                        col(Teacher.email).ilike(pattern),
                    )
                )
            return paginate(
                session,
                statement,
                col(Teacher.created_at).desc(),
                page=page,
                limit=limit,
            )

    def get_teacher(self, scope: TenantScope, teacher_id: str) -> Teacher:
        with self._session() as session:
            return scope.get(session, Teacher, teacher_id, "teacher")

    def update_teacher(self, scope: TenantScope, teacher_id: str, payload: TeacherUpdate) -> Teacher:
        changes = payload.model_dump(exclude_none=True)
        if "email" in changes:
            changes["email"] = normalize_email(changes["email"])
        with self._session() as session:
            teacher = scope.get(session, Teacher, teacher_id, "teacher")
            scope.assign(teacher, changes)
            teacher.updated_at = now_utc()
            session.add(teacher)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("teacher email already exists in school") from exc
            session.refresh(teacher)
            return teacher

    def delete_teacher(self, scope: TenantScope, teacher_id: str) -> None:
        with self._session() as session:
            teacher = scope.get(session, Teacher, teacher_id, "teacher")
            assigned = session.exec(
                scope.select(SchoolClass).where(SchoolClass.teacher_id == teacher.id)
            ).first()
            if assigned is not None:
                raise ConflictError("teacher is still assigned to classes")
            session.delete(teacher)
            session.commit()

    def assigned_class_ids(self, scope: TenantScope, teacher_id: str) -> list[str]:
        with self._session() as session:
            scope.get(session, Teacher, teacher_id, "teacher")
            statement = scope.where(select(SchoolClass.id), SchoolClass).where(SchoolClass.teacher_id == teacher_id)
            return sorted(session.exec(statement).all())

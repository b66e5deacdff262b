from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from app.domain.errors import ConflictError
from app.domain.models import (
    SchoolClass,
    SchoolClassCreate,
    SchoolClassUpdate,
    Student,
    StudentCreate,
    StudentStatus,
    StudentUpdate,
    Teacher,
    now_utc,
)
from app.infra.db import get_engine
from app.infra.tenant import TenantScope


class RosterService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def create_class(self, scope: TenantScope, payload: SchoolClassCreate) -> SchoolClass:
        with self._session() as session:
            if payload.teacher_id is not None:
                scope.get(session, Teacher, payload.teacher_id, "teacher")
            school_class = scope.new(SchoolClass, **payload.model_dump())
            session.add(school_class)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("class name and section already exist in school") from exc
            session.refresh(school_class)
            return school_class

    def list_classes(self, scope: TenantScope, *, teacher_id: str | None = None) -> list[SchoolClass]:
        with self._session() as session:
            statement = scope.select(SchoolClass)
            if teacher_id is not None:
                statement = statement.where(SchoolClass.teacher_id == teacher_id)
            statement = statement.order_by(SchoolClass.name, SchoolClass.section)
            return list(session.exec(statement).all())

    def get_class(self, scope: TenantScope, class_id: str) -> SchoolClass:
        with self._session() as session:
            return scope.get(session, SchoolClass, class_id, "class")

    def update_class(self, scope: TenantScope, class_id: str, payload: SchoolClassUpdate) -> SchoolClass:
        with self._session() as session:
            school_class = scope.get(session, SchoolClass, class_id, "class")
            changes = payload.model_dump(exclude_none=True)
            if "teacher_id" in changes:
                scope.get(session, Teacher, changes["teacher_id"], "teacher")
            scope.assign(school_class, changes)
            school_class.updated_at = now_utc()
            session.add(school_class)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("class name and section already exist in school") from exc
            session.refresh(school_class)
            return school_class

    def delete_class(self, scope: TenantScope, class_id: str) -> None:
        with self._session() as session:
            school_class = scope.get(session, SchoolClass, class_id, "class")
            session.delete(school_class)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("class still has students") from exc

    def create_student(self, scope: TenantScope, payload: StudentCreate) -> Student:
        with self._session() as session:
            scope.get(session, SchoolClass, payload.class_id, "class")
            student = scope.new(Student, **payload.model_dump())
            session.add(student)
            session.commit()
            session.refresh(student)
            return student

    def list_students(
        self,
        scope: TenantScope,
        *,
        class_id: str | None = None,
        status: StudentStatus | None = None,
    ) -> list[Student]:
        with self._session() as session:
            statement = scope.select(Student)
            if class_id is not None:
                statement = statement.where(Student.class_id == class_id)
            if status is not None:
                statement = statement.where(Student.status == status)
            statement = statement.order_by(Student.last_name, Student.first_name)
            return list(session.exec(statement).all())

    def get_student(self, scope: TenantScope, student_id: str) -> Student:
        with self._session() as session:
            return scope.get(session, Student, student_id, "student")

    def update_student(self, scope: TenantScope, student_id: str, payload: StudentUpdate) -> Student:
        with self._session() as session:
            student = scope.get(session, Student, student_id, "student")
            changes = payload.model_dump(exclude_none=True)
            if "class_id" in changes:
                scope.get(session, SchoolClass, changes["class_id"], "class")
            scope.assign(student, changes)
            student.updated_at = now_utc()
            session.add(student)
            session.commit()
            session.refresh(student)
            return student

    def delete_student(self, scope: TenantScope, student_id: str) -> None:
        with self._session() as session:
            student = scope.get(session, Student, student_id, "student")
            session.delete(student)
            session.commit()

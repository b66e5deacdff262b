from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import func
from sqlmodel import Session, col, select

from app.domain.errors import NotFoundError, UpsertConflictError, ValidationError
from app.domain.models import (
    Attendance,
    AttendanceBulkItem,
    AttendanceStatus,
    AttendanceUpdate,
    SchoolClass,
    Student,
    now_utc,
)
from app.infra.db import get_engine
from app.infra.events import event_bus
from app.infra.tenant import TenantScope
from app.infra.upsert import KeyedUpsert, UpsertResult
from app.services.paging import Page, paginate

log = logging.getLogger(__name__)


@dataclass
class BulkItemError:
    index: int
    student_id: str
    reason: str


@dataclass
class BulkMarkResult:
    day: date
    records: list[Attendance] = field(default_factory=list)
    errors: list[BulkItemError] = field(default_factory=list)


@dataclass(frozen=True)
class AttendanceSummary:
    day: date
    class_id: str | None
    total: int
    present: int
    absent: int
    late: int
    excused: int


class AttendanceService:
    daily = KeyedUpsert(Attendance, ("student_id", "day"))

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _check_roster(self, session: Session, scope: TenantScope, student_id: str, class_id: str) -> Student:
        student = scope.get(session, Student, student_id, "student")
        scope.get(session, SchoolClass, class_id, "class")
        if student.class_id != class_id:
            raise ValidationError("student is not enrolled in this class")
        return student

    def mark(
        self,
        scope: TenantScope,
        *,
        student_id: str,
        class_id: str,
        day: date,
        status: AttendanceStatus,
        remarks: str | None = None,
    ) -> UpsertResult[Attendance]:
        with self._session() as session:
            self._check_roster(session, scope, student_id, class_id)
        return self._upsert(scope, student_id, class_id, day, status, remarks)

    def _upsert(
        self,
        scope: TenantScope,
        student_id: str,
        class_id: str,
        day: date,
        status: AttendanceStatus,
        remarks: str | None,
    ) -> UpsertResult[Attendance]:
        try:
            result = self.daily.upsert(
                scope,
                {"student_id": student_id, "day": day},
                {"status": status, "remarks": remarks},
                create_only={"class_id": class_id, "marked_by": scope.principal.principal_id},
            )
        except UpsertConflictError:
            # An insert rejected by the student foreign key surfaces as not found.
            with self._session() as session:
                self._check_roster(session, scope, student_id, class_id)
            raise
        event_bus.publish_dict(
            "attendance.marked",
            scope.tenant_id,
            {
                "attendance_id": result.record.id,
                "student_id": student_id,
                "day": day.isoformat(),
                "status": status.value,
                "created": result.created,
            },
            actor_id=scope.principal.principal_id,
        )
        return result

    def mark_batch(self, scope: TenantScope, day: date, items: list[AttendanceBulkItem]) -> BulkMarkResult:
        result = BulkMarkResult(day=day)
        for index, item in enumerate(items):
            try:
                with self._session() as session:
                    self._check_roster(session, scope, item.student_id, item.class_id)
                upserted = self._upsert(scope, item.student_id, item.class_id, day, item.status, item.remarks)
            except (NotFoundError, ValidationError) as exc:
                result.errors.append(BulkItemError(index=index, student_id=item.student_id, reason=exc.message))
                continue
            result.records.append(upserted.record)
        if result.errors:
            log.info(
                "attendance.bulk_partial tenant_id=%s day=%s marked=%s rejected=%s",
                scope.tenant_id,
                day.isoformat(),
                len(result.records),
                len(result.errors),
            )
        return result

    def list_attendance(
        self,
        scope: TenantScope,
        *,
        day: date | None = None,
        start_day: date | None = None,
        end_day: date | None = None,
        class_id: str | None = None,
        student_id: str | None = None,
        status: AttendanceStatus | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> Page[Attendance]:
        with self._session() as session:
            statement = scope.select(Attendance)
            if day is not None:
                statement = statement.where(Attendance.day == day)
            else:
                if start_day is not None:
                    statement = statement.where(Attendance.day >= start_day)
                if end_day is not None:
                    statement = statement.where(Attendance.day <= end_day)
            if class_id is not None:
                statement = statement.where(Attendance.class_id == class_id)
            if student_id is not None:
                statement = statement.where(Attendance.student_id == student_id)
            if status is not None:
                statement = statement.where(Attendance.status == status)

            return paginate(
                session,
                statement,
                col(Attendance.day).desc(),
                col(Attendance.created_at).desc(),
                page=page,
                limit=limit,
            )

    def summary(self, scope: TenantScope, day: date, class_id: str | None = None) -> AttendanceSummary:
        counts = {status: 0 for status in AttendanceStatus}
        with self._session() as session:
            statement = scope.where(select(Attendance.status, func.count()), Attendance)
            statement = statement.where(Attendance.day == day)
            if class_id is not None:
                statement = statement.where(Attendance.class_id == class_id)
            for status, count in session.exec(statement.group_by(Attendance.status)).all():
                counts[AttendanceStatus(status)] = count
        return AttendanceSummary(
            day=day,
            class_id=class_id,
            total=sum(counts.values()),
            present=counts[AttendanceStatus.PRESENT],
            absent=counts[AttendanceStatus.ABSENT],
            late=counts[AttendanceStatus.LATE],
            excused=counts[AttendanceStatus.EXCUSED],
        )

    def get(self, scope: TenantScope, attendance_id: str) -> Attendance:
        with self._session() as session:
            return scope.get(session, Attendance, attendance_id, "attendance record")

    def update(self, scope: TenantScope, attendance_id: str, payload: AttendanceUpdate) -> Attendance:
        with self._session() as session:
            record = scope.get(session, Attendance, attendance_id, "attendance record")
            scope.assign(record, payload.model_dump(exclude_none=True))
            record.updated_at = now_utc()
            session.add(record)
            session.commit()
            session.refresh(record)
            return record

    def delete(self, scope: TenantScope, attendance_id: str) -> None:
        with self._session() as session:
            record = scope.get(session, Attendance, attendance_id, "attendance record")
            session.delete(record)
            session.commit()

from __future__ import annotations

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status

from app.api.deps import Scope, guard, require_perm, to_http_exception
from app.domain.errors import CoreError
from app.domain.models import (
    AttendanceBulkError,
    AttendanceBulkRead,
    AttendanceBulkRequest,
    AttendanceMarkRequest,
    AttendancePageRead,
    AttendanceRead,
    AttendanceStatus,
    AttendanceSummaryRead,
    AttendanceUpdate,
)
from app.domain.permissions import Action, Resource, Role
from app.services.attendance_service import AttendanceService

router = APIRouter()

STAFF = (Role.ADMIN, Role.TEACHER)


def get_attendance_service() -> AttendanceService:
    return AttendanceService()


Service = Annotated[AttendanceService, Depends(get_attendance_service)]


@router.get(
    "",
    response_model=AttendancePageRead,
    dependencies=[Depends(require_perm(Resource.ATTENDANCE, Action.READ))],
)
def list_attendance(
    scope: Scope,
    service: Service,
    day: date | None = None,
    start_day: date | None = None,
    end_day: date | None = None,
    class_id: str | None = None,
    student_id: str | None = None,
    mark_status: Annotated[AttendanceStatus | None, Query(alias="status")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> AttendancePageRead:
    try:
        result = service.list_attendance(
            scope,
            day=day,
            start_day=start_day,
            end_day=end_day,
            class_id=class_id,
            student_id=student_id,
            status=mark_status,
            page=page,
            limit=limit,
        )
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return AttendancePageRead(
        attendance=[AttendanceRead.model_validate(item) for item in result.records],
        count=result.count,
        page=result.page,
        total_pages=result.total_pages,
    )


@router.post(
    "",
    response_model=AttendanceRead,
    dependencies=[Depends(guard(roles=STAFF, resource=Resource.ATTENDANCE, actions=(Action.CREATE,)))],
)
def mark_attendance(
    payload: AttendanceMarkRequest,
    response: Response,
    scope: Scope,
    service: Service,
) -> AttendanceRead:
    try:
        result = service.mark(
            scope,
            student_id=payload.student_id,
            class_id=payload.class_id,
            day=payload.day,
            status=payload.status,
            remarks=payload.remarks,
        )
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    response.status_code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
    return AttendanceRead.model_validate(result.record)


@router.post(
    "/bulk",
    response_model=AttendanceBulkRead,
    dependencies=[Depends(guard(roles=STAFF, resource=Resource.ATTENDANCE, actions=(Action.CREATE,)))],
)
def mark_attendance_bulk(payload: AttendanceBulkRequest, scope: Scope, service: Service) -> AttendanceBulkRead:
    result = service.mark_batch(scope, payload.day, payload.records)
    return AttendanceBulkRead(
        day=result.day,
        attendance=[AttendanceRead.model_validate(item) for item in result.records],
        errors=[
            AttendanceBulkError(index=item.index, student_id=item.student_id, reason=item.reason)
            for item in result.errors
        ],
        count=len(result.records),
    )


@router.get(
    "/summary",
    response_model=AttendanceSummaryRead,
    dependencies=[Depends(require_perm(Resource.ATTENDANCE, Action.READ))],
)
def attendance_summary(
    scope: Scope,
    service: Service,
    day: date | None = None,
    class_id: str | None = None,
) -> AttendanceSummaryRead:
    summary = service.summary(scope, day or date.today(), class_id)
    return AttendanceSummaryRead(
        day=summary.day,
        class_id=summary.class_id,
        total=summary.total,
        present=summary.present,
        absent=summary.absent,
        late=summary.late,
        excused=summary.excused,
    )


@router.get(
    "/{attendance_id}",
    response_model=AttendanceRead,
    dependencies=[Depends(require_perm(Resource.ATTENDANCE, Action.READ))],
)
def get_attendance(attendance_id: str, scope: Scope, service: Service) -> AttendanceRead:
    try:
        record = service.get(scope, attendance_id)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return AttendanceRead.model_validate(record)


@router.put(
    "/{attendance_id}",
    response_model=AttendanceRead,
    dependencies=[Depends(guard(roles=STAFF, resource=Resource.ATTENDANCE, actions=(Action.UPDATE,)))],
)
def update_attendance(
    attendance_id: str,
    payload: AttendanceUpdate,
    scope: Scope,
    service: Service,
) -> AttendanceRead:
    try:
        record = service.update(scope, attendance_id, payload)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return AttendanceRead.model_validate(record)


@router.delete(
    "/{attendance_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(guard(roles=(Role.ADMIN,), resource=Resource.ATTENDANCE, actions=(Action.DELETE,)))],
)
def delete_attendance(attendance_id: str, scope: Scope, service: Service) -> Response:
    try:
        service.delete(scope, attendance_id)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)

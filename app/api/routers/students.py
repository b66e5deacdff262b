from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status

from app.api.deps import Scope, guard, require_perm, to_http_exception
from app.api.routers.classes import get_roster_service
from app.domain.errors import CoreError
from app.domain.models import StudentCreate, StudentRead, StudentStatus, StudentUpdate
from app.domain.permissions import Action, Resource, Role
from app.services.roster_service import RosterService

router = APIRouter()

Service = Annotated[RosterService, Depends(get_roster_service)]


@router.post(
    "",
    response_model=StudentRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(guard(roles=(Role.ADMIN,), resource=Resource.STUDENTS, actions=(Action.CREATE,)))],
)
def create_student(payload: StudentCreate, scope: Scope, service: Service) -> StudentRead:
    try:
        student = service.create_student(scope, payload)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return StudentRead.model_validate(student)


@router.get(
    "",
    response_model=list[StudentRead],
    dependencies=[Depends(require_perm(Resource.STUDENTS, Action.READ))],
)
def list_students(
    scope: Scope,
    service: Service,
    class_id: str | None = None,
    student_status: Annotated[StudentStatus | None, Query(alias="status")] = None,
) -> list[StudentRead]:
    students = service.list_students(scope, class_id=class_id, status=student_status)
    return [StudentRead.model_validate(item) for item in students]


@router.get(
    "/{student_id}",
    response_model=StudentRead,
    dependencies=[Depends(require_perm(Resource.STUDENTS, Action.READ))],
)
def get_student(student_id: str, scope: Scope, service: Service) -> StudentRead:
    try:
        student = service.get_student(scope, student_id)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return StudentRead.model_validate(student)


@router.patch(
    "/{student_id}",
    response_model=StudentRead,
    dependencies=[Depends(guard(roles=(Role.ADMIN,), resource=Resource.STUDENTS, actions=(Action.UPDATE,)))],
)
def update_student(student_id: str, payload: StudentUpdate, scope: Scope, service: Service) -> StudentRead:
    try:
        student = service.update_student(scope, student_id, payload)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return StudentRead.model_validate(student)


@router.delete(
    "/{student_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(guard(roles=(Role.ADMIN,), resource=Resource.STUDENTS, actions=(Action.DELETE,)))],
)
def delete_student(student_id: str, scope: Scope, service: Service) -> Response:
    try:
        service.delete_student(scope, student_id)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)

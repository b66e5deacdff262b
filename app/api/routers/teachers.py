from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status

from app.api.deps import Scope, guard, require_perm, to_http_exception
from app.domain.errors import CoreError
from app.domain.models import TeacherCreate, TeacherPageRead, TeacherRead, TeacherStatus, TeacherUpdate
from app.domain.permissions import Action, Resource, Role
from app.services.staff_service import TeacherService

router = APIRouter()


def get_teacher_service() -> TeacherService:
    return TeacherService()


Service = Annotated[TeacherService, Depends(get_teacher_service)]


@router.post(
    "",
    response_model=TeacherRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(guard(roles=(Role.ADMIN,), resource=Resource.TEACHERS, actions=(Action.CREATE,)))],
)
def create_teacher(payload: TeacherCreate, scope: Scope, service: Service) -> TeacherRead:
    try:
        teacher = service.create_teacher(scope, payload)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return TeacherRead.model_validate(teacher)


@router.get(
    "",
    response_model=TeacherPageRead,
    dependencies=[Depends(require_perm(Resource.TEACHERS, Action.READ))],
)
def list_teachers(
    scope: Scope,
    service: Service,
    teacher_status: Annotated[TeacherStatus | None, Query(alias="status")] = None,
    search: str | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=200)] = 10,
) -> TeacherPageRead:
    try:
        result = service.list_teachers(scope, status=teacher_status, search=search, page=page, limit=limit)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return TeacherPageRead(
        teachers=[TeacherRead.model_validate(item) for item in result.records],
        count=result.count,
        page=result.page,
        total_pages=result.total_pages,
    )


@router.get(
    "/{teacher_id}",
    response_model=TeacherRead,
    dependencies=[Depends(require_perm(Resource.TEACHERS, Action.READ))],
)
def get_teacher(teacher_id: str, scope: Scope, service: Service) -> TeacherRead:
    try:
        teacher = service.get_teacher(scope, teacher_id)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return TeacherRead.model_validate(teacher)


@router.get(
    "/{teacher_id}/classes",
    response_model=list[str],
    dependencies=[Depends(require_perm(Resource.TEACHERS, Action.READ))],
)
def get_teacher_classes(teacher_id: str, scope: Scope, service: Service) -> list[str]:
    try:
        return service.assigned_class_ids(scope, teacher_id)
    except CoreError as exc:
        raise to_http_exception(exc) from exc


@router.put(
    "/{teacher_id}",
    response_model=TeacherRead,
    dependencies=[Depends(guard(roles=(Role.ADMIN,), resource=Resource.TEACHERS, actions=(Action.UPDATE,)))],
)
def update_teacher(teacher_id: str, payload: TeacherUpdate, scope: Scope, service: Service) -> TeacherRead:
    try:
        teacher = service.update_teacher(scope, teacher_id, payload)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return TeacherRead.model_validate(teacher)


@router.delete(
    "/{teacher_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(guard(roles=(Role.ADMIN,), resource=Resource.TEACHERS, actions=(Action.DELETE,)))],
)
def delete_teacher(teacher_id: str, scope: Scope, service: Service) -> Response:
    try:
        service.delete_teacher(scope, teacher_id)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)

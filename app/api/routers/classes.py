from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from app.api.deps import Scope, guard, require_perm, to_http_exception
from app.domain.errors import CoreError
from app.domain.models import SchoolClassCreate, SchoolClassRead, SchoolClassUpdate
from app.domain.permissions import Action, Resource, Role
from app.services.roster_service import RosterService

router = APIRouter()


def get_roster_service() -> RosterService:
    return RosterService()


Service = Annotated[RosterService, Depends(get_roster_service)]


@router.post(
    "",
    response_model=SchoolClassRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(guard(roles=(Role.ADMIN,), resource=Resource.CLASSES, actions=(Action.CREATE,)))],
)
def create_class(payload: SchoolClassCreate, scope: Scope, service: Service) -> SchoolClassRead:
    try:
        school_class = service.create_class(scope, payload)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return SchoolClassRead.model_validate(school_class)


@router.get(
    "",
    response_model=list[SchoolClassRead],
    dependencies=[Depends(require_perm(Resource.CLASSES, Action.READ))],
)
def list_classes(scope: Scope, service: Service, teacher_id: str | None = None) -> list[SchoolClassRead]:
    return [SchoolClassRead.model_validate(item) for item in service.list_classes(scope, teacher_id=teacher_id)]


@router.get(
    "/{class_id}",
    response_model=SchoolClassRead,
    dependencies=[Depends(require_perm(Resource.CLASSES, Action.READ))],
)
def get_class(class_id: str, scope: Scope, service: Service) -> SchoolClassRead:
    try:
        school_class = service.get_class(scope, class_id)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return SchoolClassRead.model_validate(school_class)


@router.patch(
    "/{class_id}",
    response_model=SchoolClassRead,
    dependencies=[Depends(guard(roles=(Role.ADMIN,), resource=Resource.CLASSES, actions=(Action.UPDATE,)))],
)
def update_class(class_id: str, payload: SchoolClassUpdate, scope: Scope, service: Service) -> SchoolClassRead:
    try:
        school_class = service.update_class(scope, class_id, payload)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return SchoolClassRead.model_validate(school_class)


@router.delete(
    "/{class_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(guard(roles=(Role.ADMIN,), resource=Resource.CLASSES, actions=(Action.DELETE,)))],
)
def delete_class(class_id: str, scope: Scope, service: Service) -> Response:
    try:
        service.delete_class(scope, class_id)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)

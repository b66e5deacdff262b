from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Response, status

from app.api.deps import Scope, get_identity_service, guard, to_http_exception
from app.domain.errors import CoreError
from app.domain.models import UserCreate, UserRead, UserUpdate
from app.domain.permissions import Action, Resource, Role
from app.services.identity_service import IdentityService

router = APIRouter()

Service = Annotated[IdentityService, Depends(get_identity_service)]


def _admin_guard(action: Action) -> Any:
    return Depends(guard(roles=(Role.ADMIN,), resource=Resource.USERS, actions=(action,)))


@router.post(
    "",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[_admin_guard(Action.CREATE)],
)
def create_user(payload: UserCreate, scope: Scope, service: Service) -> UserRead:
    try:
        user = service.create_user(scope, payload)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return UserRead.model_validate(user)


@router.get("", response_model=list[UserRead], dependencies=[_admin_guard(Action.READ)])
def list_users(scope: Scope, service: Service, role: Role | None = None) -> list[UserRead]:
    return [UserRead.model_validate(item) for item in service.list_users(scope, role)]


@router.get("/{user_id}", response_model=UserRead, dependencies=[_admin_guard(Action.READ)])
def get_user(user_id: str, scope: Scope, service: Service) -> UserRead:
    try:
        user = service.get_user(scope, user_id)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return UserRead.model_validate(user)


@router.patch("/{user_id}", response_model=UserRead, dependencies=[_admin_guard(Action.UPDATE)])
def update_user(user_id: str, payload: UserUpdate, scope: Scope, service: Service) -> UserRead:
    try:
        user = service.update_user(scope, user_id, payload)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return UserRead.model_validate(user)


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[_admin_guard(Action.DELETE)],
)
def delete_user(user_id: str, scope: Scope, service: Service) -> Response:
    try:
        service.delete_user(scope, user_id)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)

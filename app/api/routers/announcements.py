from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status

from app.api.deps import Scope, guard, require_perm, to_http_exception
from app.domain.errors import CoreError
from app.domain.models import (
    AnnouncementCreate,
    AnnouncementPageRead,
    AnnouncementRead,
    AnnouncementStatus,
    AnnouncementType,
    AnnouncementUpdate,
    TargetAudience,
)
from app.domain.permissions import Action, Resource, Role
from app.services.announcement_service import AnnouncementService

router = APIRouter()


def get_announcement_service() -> AnnouncementService:
    return AnnouncementService()


Service = Annotated[AnnouncementService, Depends(get_announcement_service)]


@router.post(
    "",
    response_model=AnnouncementRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[
        Depends(guard(roles=(Role.ADMIN,), resource=Resource.ANNOUNCEMENTS, actions=(Action.CREATE,)))
    ],
)
def create_announcement(payload: AnnouncementCreate, scope: Scope, service: Service) -> AnnouncementRead:
    try:
        announcement = service.create_announcement(scope, payload)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return AnnouncementRead.model_validate(announcement)


@router.get(
    "",
    response_model=AnnouncementPageRead,
    dependencies=[Depends(require_perm(Resource.ANNOUNCEMENTS, Action.READ))],
)
def list_announcements(
    scope: Scope,
    service: Service,
    announcement_type: AnnouncementType | None = None,
    announcement_status: Annotated[AnnouncementStatus | None, Query(alias="status")] = None,
    target_audience: TargetAudience | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=200)] = 10,
) -> AnnouncementPageRead:
    try:
        result = service.list_announcements(
            scope,
            announcement_type=announcement_type,
            status=announcement_status,
            target_audience=target_audience,
            page=page,
            limit=limit,
        )
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return AnnouncementPageRead(
        announcements=[AnnouncementRead.model_validate(item) for item in result.records],
        count=result.count,
        page=result.page,
        total_pages=result.total_pages,
    )


@router.get(
    "/active",
    response_model=list[AnnouncementRead],
    dependencies=[Depends(require_perm(Resource.ANNOUNCEMENTS, Action.READ))],
)
def active_announcements(scope: Scope, service: Service) -> list[AnnouncementRead]:
    return [AnnouncementRead.model_validate(item) for item in service.active(scope)]


@router.get(
    "/{announcement_id}",
    response_model=AnnouncementRead,
    dependencies=[Depends(require_perm(Resource.ANNOUNCEMENTS, Action.READ))],
)
def get_announcement(announcement_id: str, scope: Scope, service: Service) -> AnnouncementRead:
    try:
        announcement = service.get_announcement(scope, announcement_id)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return AnnouncementRead.model_validate(announcement)


@router.put(
    "/{announcement_id}",
    response_model=AnnouncementRead,
    dependencies=[
        Depends(guard(roles=(Role.ADMIN,), resource=Resource.ANNOUNCEMENTS, actions=(Action.UPDATE,)))
    ],
)
def update_announcement(
    announcement_id: str,
    payload: AnnouncementUpdate,
    scope: Scope,
    service: Service,
) -> AnnouncementRead:
    try:
        announcement = service.update_announcement(scope, announcement_id, payload)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return AnnouncementRead.model_validate(announcement)


@router.post(
    "/{announcement_id}/publish",
    response_model=AnnouncementRead,
    dependencies=[
        Depends(guard(roles=(Role.ADMIN,), resource=Resource.ANNOUNCEMENTS, actions=(Action.UPDATE,)))
    ],
)
def publish_announcement(announcement_id: str, scope: Scope, service: Service) -> AnnouncementRead:
    try:
        announcement = service.publish(scope, announcement_id)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return AnnouncementRead.model_validate(announcement)


@router.delete(
    "/{announcement_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[
        Depends(guard(roles=(Role.ADMIN,), resource=Resource.ANNOUNCEMENTS, actions=(Action.DELETE,)))
    ],
)
def delete_announcement(announcement_id: str, scope: Scope, service: Service) -> Response:
    try:
        service.delete_announcement(scope, announcement_id)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)

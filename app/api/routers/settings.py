from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from app.api.deps import CurrentPrincipal, Scope, guard, require_perm
from app.domain.models import SettingsRead, SettingsUpdate
from app.domain.permissions import Action, Resource, Role
from app.services.settings_service import SettingsService, academic_years

router = APIRouter()


def get_settings_service() -> SettingsService:
    return SettingsService()


Service = Annotated[SettingsService, Depends(get_settings_service)]


@router.get(
    "",
    response_model=SettingsRead,
    dependencies=[Depends(require_perm(Resource.SETTINGS, Action.READ))],
)
def get_settings(scope: Scope, service: Service) -> SettingsRead:
    return SettingsRead.model_validate(service.get_settings(scope))


@router.put(
    "",
    response_model=SettingsRead,
    dependencies=[Depends(guard(roles=(Role.ADMIN,), resource=Resource.SETTINGS, actions=(Action.UPDATE,)))],
)
def update_settings(payload: SettingsUpdate, scope: Scope, service: Service) -> SettingsRead:
    return SettingsRead.model_validate(service.update_settings(scope, payload))


@router.get("/academic-years", response_model=list[str])
def list_academic_years(_principal: CurrentPrincipal) -> list[str]:
    return academic_years()

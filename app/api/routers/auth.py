from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status

from app.api.deps import CurrentPrincipal, Scope, get_identity_service, to_http_exception
from app.domain.errors import CoreError
from app.domain.models import (
    ChangePasswordRequest,
    LoginRequest,
    MeRead,
    PermissionsRead,
    ProfileUpdate,
    SchoolSignupRequest,
    Tenant,
    TenantRead,
    TokenResponse,
    User,
    UserRead,
)
from app.domain.permissions import permission_table
from app.infra.audit import set_audit_context
from app.infra.auth import issue_access_token
from app.services.identity_service import IdentityService

router = APIRouter()

Service = Annotated[IdentityService, Depends(get_identity_service)]


def _token_response(user: User, tenant: Tenant) -> TokenResponse:
    token = issue_access_token(principal_id=user.id, tenant_id=tenant.id, role=user.role)
    return TokenResponse(
        access_token=token,
        permissions=permission_table(user.role),
        school=TenantRead.model_validate(tenant),
        user=UserRead.model_validate(user),
    )


@router.post("/school/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def school_signup(payload: SchoolSignupRequest, request: Request, service: Service) -> TokenResponse:
    try:
        tenant, admin = service.bootstrap_tenant(payload)
    except CoreError as exc:
        set_audit_context(request, action="tenant.bootstrap", resource="tenants")
        raise to_http_exception(exc) from exc
    set_audit_context(
        request,
        action="tenant.bootstrap",
        resource="tenants",
        detail={"who": {"tenant_id": tenant.id, "actor_id": admin.id}},
    )
    return _token_response(admin, tenant)


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, service: Service) -> TokenResponse:
    try:
        user, tenant = service.login(payload.email, payload.password, payload.tenant_id)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return _token_response(user, tenant)


@router.get("/me", response_model=MeRead)
def me(principal: CurrentPrincipal, scope: Scope, service: Service) -> MeRead:
    try:
        user, tenant = service.get_me(scope)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return MeRead(
        school=TenantRead.model_validate(tenant),
        user=UserRead.model_validate(user),
        permissions=permission_table(principal.role),
    )


@router.get("/permissions", response_model=PermissionsRead)
def permissions(principal: CurrentPrincipal) -> PermissionsRead:
    return PermissionsRead(
        principal_id=principal.principal_id,
        tenant_id=principal.tenant_id,
        role=principal.role,
        permissions=permission_table(principal.role),
    )


@router.put("/profile", response_model=UserRead)
def update_profile(payload: ProfileUpdate, scope: Scope, service: Service) -> UserRead:
    try:
        user = service.update_profile(scope, payload)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return UserRead.model_validate(user)


@router.put("/change-password", status_code=status.HTTP_204_NO_CONTENT)
def change_password(payload: ChangePasswordRequest, scope: Scope, service: Service) -> Response:
    try:
        service.change_password(scope, payload)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)

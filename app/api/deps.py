from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable
from typing import Annotated

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.domain.errors import (
    CoreError,
    ExpiredTokenError,
    ForbiddenError,
    InactiveAccountError,
    InvalidTokenError,
    NoTokenError,
    UnauthenticatedError,
)
from app.domain.models import BLOCKED_TENANT_STATUSES, UserStatus
from app.domain.permissions import Action, Resource, Role, has_permission
from app.infra.audit import PRINCIPAL_STATE_KEY, record_denial
from app.infra.auth import CredentialError, TokenExpired, verify_access_token
from app.infra.tenant import Principal, TenantScope
from app.services.identity_service import IdentityService

log = logging.getLogger(__name__)

AUTH_RECHECK_PRINCIPAL = os.getenv("AUTH_RECHECK_PRINCIPAL", "1").lower() not in {"0", "false", "no"}

bearer_scheme = HTTPBearer(auto_error=False)


def to_http_exception(exc: CoreError) -> HTTPException:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return HTTPException(
        status_code=exc.status_code,
        detail={"kind": exc.kind.value, "message": exc.message},
        headers=headers,
    )


def get_identity_service() -> IdentityService:
    return IdentityService()


def resolve_principal(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    identity: Annotated[IdentityService, Depends(get_identity_service)],
) -> Principal:
    try:
        principal = _resolve(credentials, identity)
    except CoreError as exc:
        log.info("auth.rejected kind=%s path=%s", exc.kind.value, request.url.path)
        raise to_http_exception(exc) from exc
    setattr(request.state, PRINCIPAL_STATE_KEY, principal)
    return principal


def _resolve(credentials: HTTPAuthorizationCredentials | None, identity: IdentityService) -> Principal:
    if credentials is None or not credentials.credentials:
        raise NoTokenError()
    try:
        claims = verify_access_token(credentials.credentials)
    except TokenExpired as exc:
        raise ExpiredTokenError() from exc
    except CredentialError as exc:
        raise InvalidTokenError() from exc

    if AUTH_RECHECK_PRINCIPAL:
        account = identity.load_account(claims.principal_id, claims.tenant_id)
        if account is None:
            raise InactiveAccountError("account no longer exists")
        user, tenant = account
        if user.status != UserStatus.ACTIVE:
            raise InactiveAccountError("account is inactive")
        if tenant.status in BLOCKED_TENANT_STATUSES:
            raise InactiveAccountError(f"school account is {tenant.status.value}")
        if user.role != claims.role:
            raise InvalidTokenError("token role no longer matches account")

    return Principal.build(claims.principal_id, claims.tenant_id, claims.role)


CurrentPrincipal = Annotated[Principal, Depends(resolve_principal)]


def get_tenant_scope(principal: CurrentPrincipal) -> TenantScope:
    return TenantScope(principal)


Scope = Annotated[TenantScope, Depends(get_tenant_scope)]


def check_authenticated(principal: Principal | None, request: Request | None = None) -> Principal:
    if principal is None:
        record_denial(request, None, resource="*", action="*", reason="unauthenticated")
        raise UnauthenticatedError()
    return principal


def check_role(principal: Principal, allowed: Iterable[Role], request: Request | None = None) -> None:
    allowed_roles = frozenset(allowed)
    if principal.role not in allowed_roles:
        record_denial(
            request,
            principal,
            resource="*",
            action="*",
            reason=f"role not in {sorted(role.value for role in allowed_roles)}",
        )
        raise ForbiddenError("access denied, insufficient role")


def check_permission(
    principal: Principal,
    resource: Resource,
    actions: Iterable[Action],
    request: Request | None = None,
) -> None:
    wanted = list(actions)
    if any(has_permission(principal.role, resource, action) for action in wanted):
        return
    action_label = "|".join(action.value for action in wanted)
    record_denial(request, principal, resource=resource.value, action=action_label, reason="permission")
    raise ForbiddenError(f"access denied, no permission to {action_label} {resource.value}")


def guard(
    *,
    roles: Iterable[Role] | None = None,
    resource: Resource | None = None,
    actions: Iterable[Action] = (),
) -> Callable[..., Principal]:
    """Build the dependency that authorizes a route.

    Checks run authenticate -> role -> permission and stop at the first
    failure, before the handler body runs.
    """
    allowed_roles = frozenset(roles) if roles is not None else None
    wanted_actions = tuple(actions)
    if resource is not None and not wanted_actions:
        raise ValueError("a resource guard needs at least one action")

    def _checker(request: Request, principal: CurrentPrincipal) -> Principal:
        try:
            checked = check_authenticated(principal, request)
            if allowed_roles is not None:
                check_role(checked, allowed_roles, request)
            if resource is not None:
                check_permission(checked, resource, wanted_actions, request)
        except CoreError as exc:
            raise to_http_exception(exc) from exc
        return checked

    return _checker


def require_role(*roles: Role) -> Callable[..., Principal]:
    return guard(roles=roles)


def require_perm(resource: Resource, action: Action) -> Callable[..., Principal]:
    return guard(resource=resource, actions=(action,))


def require_any_perm(resource: Resource, *actions: Action) -> Callable[..., Principal]:
    return guard(resource=resource, actions=actions)

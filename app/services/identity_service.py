from __future__ import annotations

import hashlib
import hmac
import logging
import os
import secrets
from datetime import timedelta

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.domain.errors import (
    AuthError,
    ConflictError,
    InactiveAccountError,
    NotFoundError,
    TenantAlreadyExistsError,
    ValidationError,
)
from app.domain.models import (
    BLOCKED_TENANT_STATUSES,
    ChangePasswordRequest,
    EventEnvelope,
    ProfileUpdate,
    SchoolSignupRequest,
    SubscriptionPlan,
    Tenant,
    TenantStatus,
    User,
    UserCreate,
    UserStatus,
    UserUpdate,
    now_utc,
)
from app.domain.permissions import Role
from app.infra.db import get_engine
from app.infra.events import event_bus
from app.infra.tenant import TenantScope

log = logging.getLogger(__name__)

TRIAL_DAYS = int(os.getenv("TRIAL_DAYS", "14"))
PASSWORD_HASH_ITERATIONS = int(os.getenv("PASSWORD_HASH_ITERATIONS", "120000"))
PASSWORD_HASH_SCHEME = "pbkdf2_sha256"

TENANT_BLOCKED_MESSAGES = {
    TenantStatus.SUSPENDED: "your school account has been suspended, please contact support",
    TenantStatus.EXPIRED: "your subscription has expired, please renew to continue",
}


def normalize_email(raw: str) -> str:
    return raw.strip().lower()


def hash_password(raw_password: str, *, salt: str | None = None, iterations: int | None = None) -> str:
    salt_value = salt or secrets.token_hex(16)
    rounds = iterations or PASSWORD_HASH_ITERATIONS
    digest = hashlib.pbkdf2_hmac("sha256", raw_password.encode(), salt_value.encode(), rounds)
    return f"{PASSWORD_HASH_SCHEME}${rounds}${salt_value}${digest.hex()}"


def verify_password(raw_password: str, password_hash: str) -> bool:
    try:
        scheme, rounds, salt, _ = password_hash.split("$", 3)
        iterations = int(rounds)
    except ValueError:
        return False
    if scheme != PASSWORD_HASH_SCHEME:
        return False
    candidate = hash_password(raw_password, salt=salt, iterations=iterations)
    return hmac.compare_digest(candidate, password_hash)


def split_owner_name(owner_name: str) -> tuple[str, str]:
    parts = owner_name.split()
    if not parts:
        raise ValidationError("owner name is required")
    first_name = parts[0]
    last_name = " ".join(parts[1:]) or first_name
    return first_name, last_name


def ensure_tenant_open(tenant: Tenant) -> None:
    if tenant.status in BLOCKED_TENANT_STATUSES:
        raise InactiveAccountError(TENANT_BLOCKED_MESSAGES[TenantStatus(tenant.status)])


class IdentityService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _build_tenant(self, payload: SchoolSignupRequest) -> Tenant:
        now = now_utc()
        return Tenant(
            name=payload.school_name.strip(),
            email=normalize_email(payload.email),
            phone=payload.phone,
            address=payload.address,
            city=payload.city,
            status=TenantStatus.TRIAL,
            subscription_plan=SubscriptionPlan.FREE,
            trial_ends_at=now + timedelta(days=TRIAL_DAYS),
            created_at=now,
            updated_at=now,
        )

    def _build_admin(self, tenant: Tenant, payload: SchoolSignupRequest) -> User:
        first_name, last_name = split_owner_name(payload.owner_name)
        return User(
            tenant_id=tenant.id,
            email=normalize_email(payload.email),
            password_hash=hash_password(payload.password),
            first_name=first_name,
            last_name=last_name,
            phone=payload.phone,
            role=Role.ADMIN,
            status=UserStatus.ACTIVE,
        )

    def bootstrap_tenant(self, payload: SchoolSignupRequest) -> tuple[Tenant, User]:
        """Create a school and its first administrator in one transaction.

        Either both rows are committed or neither is: a failure after the
        tenant insert rolls the tenant back with it.
        """
        email = normalize_email(payload.email)
        with self._session() as session:
            existing = session.exec(select(Tenant.id).where(Tenant.email == email)).first()
            if existing is not None:
                raise TenantAlreadyExistsError()

            tenant = self._build_tenant(payload)
            session.add(tenant)
            try:
                session.flush()
            except IntegrityError as exc:
                session.rollback()
                raise TenantAlreadyExistsError() from exc

            admin = self._build_admin(tenant, payload)
            session.add(admin)
            try:
                session.flush()
            except IntegrityError as exc:
                session.rollback()
                log.warning("tenant.bootstrap_rolled_back email=%s reason=admin_insert_failed", email)
                raise ConflictError("administrator account could not be created") from exc

            event = EventEnvelope(
                event_type="tenant.bootstrapped",
                tenant_id=tenant.id,
                actor_id=admin.id,
                payload={"tenant_id": tenant.id, "admin_id": admin.id, "email": email},
            )
            event_bus.record(event, session)
            session.commit()
            session.refresh(tenant)
            session.refresh(admin)

        event_bus.dispatch(event)
        log.info("tenant.bootstrapped tenant_id=%s admin_id=%s", tenant.id, admin.id)
        return tenant, admin

    def login(self, email: str, password: str, tenant_id: str | None = None) -> tuple[User, Tenant]:
        normalized = normalize_email(email)
        with self._session() as session:
            statement = select(User).where(User.email == normalized)
            if tenant_id is not None:
                statement = statement.where(User.tenant_id == tenant_id)
            candidates = list(session.exec(statement).all())
            if not candidates:
                raise AuthError()
            if len(candidates) > 1:
                raise ConflictError("email is registered with several schools, tenant_id is required")
            user = candidates[0]
            if not verify_password(password, user.password_hash):
                raise AuthError()
            if user.status != UserStatus.ACTIVE:
                raise InactiveAccountError("account is inactive")
            tenant = session.get(Tenant, user.tenant_id)
            if tenant is None:
                raise NotFoundError("school not found")
            ensure_tenant_open(tenant)

            user.last_login_at = now_utc()
            session.add(user)
            session.commit()
            session.refresh(user)
        log.info("auth.login_ok tenant_id=%s user_id=%s role=%s", user.tenant_id, user.id, user.role)
        return user, tenant

    def load_account(self, principal_id: str, tenant_id: str) -> tuple[User, Tenant] | None:
        """Single read used by the principal resolver on every request."""
        with self._session() as session:
            statement = (
                select(User, Tenant)
                .join(Tenant, Tenant.id == User.tenant_id)
                .where(User.id == principal_id)
                .where(User.tenant_id == tenant_id)
            )
            row = session.exec(statement).first()
            if row is None:
                return None
            user, tenant = row
            return user, tenant

    def get_me(self, scope: TenantScope) -> tuple[User, Tenant]:
        with self._session() as session:
            user = scope.get(session, User, scope.principal.principal_id, "user")
            tenant = session.get(Tenant, scope.tenant_id)
            if tenant is None:
                raise NotFoundError("school not found")
            return user, tenant

    def get_tenant(self, scope: TenantScope) -> Tenant:
        with self._session() as session:
            tenant = session.get(Tenant, scope.tenant_id)
            if tenant is None:
                raise NotFoundError("school not found")
            return tenant

    def update_profile(self, scope: TenantScope, payload: ProfileUpdate) -> User:
        with self._session() as session:
            user = scope.get(session, User, scope.principal.principal_id, "user")
            scope.assign(user, payload.model_dump(exclude_none=True))
            user.updated_at = now_utc()
            session.add(user)
            session.commit()
            session.refresh(user)
            return user

    def change_password(self, scope: TenantScope, payload: ChangePasswordRequest) -> None:
        with self._session() as session:
            user = scope.get(session, User, scope.principal.principal_id, "user")
            if not verify_password(payload.current_password, user.password_hash):
                raise AuthError("current password is incorrect")
            user.password_hash = hash_password(payload.new_password)
            user.updated_at = now_utc()
            session.add(user)
            session.commit()
        log.info("auth.password_changed tenant_id=%s user_id=%s", scope.tenant_id, scope.principal.principal_id)

    def create_user(self, scope: TenantScope, payload: UserCreate) -> User:
        with self._session() as session:
            user = scope.new(
                User,
                email=normalize_email(payload.email),
                password_hash=hash_password(payload.password),
                first_name=payload.first_name,
                last_name=payload.last_name,
                phone=payload.phone,
                role=payload.role,
                status=UserStatus.ACTIVE,
            )
            session.add(user)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("user email already exists in school") from exc
            session.refresh(user)

        event_bus.publish_dict(
            "user.created",
            scope.tenant_id,
            {"user_id": user.id, "role": user.role.value},
            actor_id=scope.principal.principal_id,
        )
        return user

    def list_users(self, scope: TenantScope, role: Role | None = None) -> list[User]:
        with self._session() as session:
            statement = scope.select(User)
            if role is not None:
                statement = statement.where(User.role == role)
            return list(session.exec(statement).all())

    def get_user(self, scope: TenantScope, user_id: str) -> User:
        with self._session() as session:
            return scope.get(session, User, user_id, "user")

    def update_user(self, scope: TenantScope, user_id: str, payload: UserUpdate) -> User:
        with self._session() as session:
            user = scope.get(session, User, user_id, "user")
            scope.assign(user, payload.model_dump(exclude_none=True))
            user.updated_at = now_utc()
            session.add(user)
            session.commit()
            session.refresh(user)
            return user

    def delete_user(self, scope: TenantScope, user_id: str) -> None:
        if user_id == scope.principal.principal_id:
            raise ConflictError("cannot delete own account")
        with self._session() as session:
            user = scope.get(session, User, user_id, "user")
            session.delete(user)
            session.commit()

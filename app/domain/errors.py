from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    NO_TOKEN = "no_token"
    INVALID_TOKEN = "invalid_token"
    EXPIRED = "expired"
    ACCOUNT_OR_TENANT_INACTIVE = "account_or_tenant_inactive"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    TENANT_ALREADY_EXISTS = "tenant_already_exists"
    NOT_FOUND = "not_found"
    UPSERT_CONFLICT = "upsert_conflict"
    INVALID_CREDENTIALS = "invalid_credentials"
    CONFLICT = "conflict"
    VALIDATION_ERROR = "validation_error"


class CoreError(Exception):
    """Base for expected, user-visible failures.

    Each subclass pins a stable machine-readable ``kind`` and the HTTP status
    the API layer answers with.
    """

    kind: ErrorKind = ErrorKind.CONFLICT
    status_code: int = 400
    default_message = "request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NoTokenError(CoreError):
    kind = ErrorKind.NO_TOKEN
    status_code = 401
    default_message = "no token provided"


class InvalidTokenError(CoreError):
    kind = ErrorKind.INVALID_TOKEN
    status_code = 401
    default_message = "invalid token"


class ExpiredTokenError(InvalidTokenError):
    kind = ErrorKind.EXPIRED
    default_message = "token expired"


class InactiveAccountError(CoreError):
    kind = ErrorKind.ACCOUNT_OR_TENANT_INACTIVE
    status_code = 403
    default_message = "account or school is not active"


class UnauthenticatedError(CoreError):
    kind = ErrorKind.UNAUTHENTICATED
    status_code = 401
    default_message = "not authenticated"


class ForbiddenError(CoreError):
    kind = ErrorKind.FORBIDDEN
    status_code = 403
    default_message = "access denied"


class TenantAlreadyExistsError(CoreError):
    kind = ErrorKind.TENANT_ALREADY_EXISTS
    status_code = 409
    default_message = "a school with this email already exists"


class NotFoundError(CoreError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404
    default_message = "not found"


class AuthError(CoreError):
    kind = ErrorKind.INVALID_CREDENTIALS
    status_code = 401
    default_message = "invalid email or password"


class ConflictError(CoreError):
    kind = ErrorKind.CONFLICT
    status_code = 409
    default_message = "conflict"


class ValidationError(CoreError):
    kind = ErrorKind.VALIDATION_ERROR
    status_code = 400
    default_message = "invalid request"


class UpsertConflictError(Exception):
    """Raised when the single retry after a unique-key collision still cannot
    find the competing row. Not a CoreError: it surfaces as a 500."""

    kind = ErrorKind.UPSERT_CONFLICT

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from app.domain.permissions import Role

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me-at-least-32-bytes")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MIN = int(os.getenv("JWT_EXPIRES_MIN", "60"))

REQUIRED_CLAIMS = ("sub", "tenant_id", "role", "iat", "exp")


class CredentialError(Exception):
    pass


class TokenMalformed(CredentialError):
    pass


class TokenBadSignature(CredentialError):
    pass


class TokenExpired(CredentialError):
    pass


@dataclass(frozen=True)
class TokenClaims:
    principal_id: str
    tenant_id: str
    role: Role
    issued_at: datetime
    expires_at: datetime


def issue_access_token(
    *,
    principal_id: str,
    tenant_id: str,
    role: str,
    ttl: timedelta | None = None,
    now: datetime | None = None,
) -> str:
    issued = now or datetime.now(UTC)
    expire_delta = ttl if ttl is not None else timedelta(minutes=JWT_EXPIRES_MIN)
    payload: dict[str, Any] = {
        "sub": principal_id,
        "tenant_id": tenant_id,
        "role": Role(role).value,
        "iat": issued.timestamp(),
        "exp": (issued + expire_delta).timestamp(),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_access_token(token: str, now: datetime | None = None) -> TokenClaims:
    # Expiry is checked here instead of by PyJWT so callers can pin "now".
    try:
        decoded = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            options={"verify_exp": False, "verify_iat": False, "require": list(REQUIRED_CLAIMS)},
        )
    except jwt.InvalidSignatureError as exc:
        raise TokenBadSignature("signature mismatch") from exc
    except jwt.InvalidTokenError as exc:
        raise TokenMalformed(str(exc)) from exc

    if not isinstance(decoded, dict):
        raise TokenMalformed("invalid token payload")
    principal_id = decoded.get("sub")
    tenant_id = decoded.get("tenant_id")
    if not isinstance(principal_id, str) or not principal_id:
        raise TokenMalformed("invalid sub claim")
    if not isinstance(tenant_id, str) or not tenant_id:
        raise TokenMalformed("invalid tenant_id claim")
    try:
        role = Role(decoded.get("role"))
        issued_at = datetime.fromtimestamp(float(decoded["iat"]), UTC)
        expires_at = datetime.fromtimestamp(float(decoded["exp"]), UTC)
    except (TypeError, ValueError, OverflowError) as exc:
        raise TokenMalformed("invalid claim value") from exc

    current = now or datetime.now(UTC)
    if current >= expires_at:
        raise TokenExpired("token expired")
    return TokenClaims(
        principal_id=principal_id,
        tenant_id=tenant_id,
        role=role,
        issued_at=issued_at,
        expires_at=expires_at,
    )

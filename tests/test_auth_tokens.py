from __future__ import annotations

from datetime import UTC, datetime, timedelta

import jwt
import pytest

from app.domain.permissions import Role
from app.infra import auth
from app.infra.auth import (
    TokenBadSignature,
    TokenExpired,
    TokenMalformed,
    issue_access_token,
    verify_access_token,
)

NOW = datetime(2026, 10, 18, 8, 0, tzinfo=UTC)


def test_issue_and_verify_roundtrip() -> None:
    token = issue_access_token(principal_id="user-1", tenant_id="tenant-1", role=Role.TEACHER, now=NOW)
    claims = verify_access_token(token, now=NOW + timedelta(minutes=5))
    assert claims.principal_id == "user-1"
    assert claims.tenant_id == "tenant-1"
    assert claims.role is Role.TEACHER
    assert claims.issued_at == NOW
    assert claims.expires_at == NOW + timedelta(minutes=auth.JWT_EXPIRES_MIN)


def test_zero_ttl_token_is_already_expired() -> None:
    token = issue_access_token(
        principal_id="user-1",
        tenant_id="tenant-1",
        role=Role.ADMIN,
        ttl=timedelta(0),
        now=NOW,
    )
    with pytest.raises(TokenExpired):
        verify_access_token(token, now=NOW)


def test_token_expires_at_boundary() -> None:
    token = issue_access_token(
        principal_id="user-1",
        tenant_id="tenant-1",
        role=Role.PARENT,
        ttl=timedelta(minutes=1),
        now=NOW,
    )
    verify_access_token(token, now=NOW + timedelta(seconds=59))
    with pytest.raises(TokenExpired):
        verify_access_token(token, now=NOW + timedelta(minutes=1))


def test_foreign_signature_is_rejected() -> None:
    payload = {
        "sub": "user-1",
        "tenant_id": "tenant-1",
        "role": "admin",
        "iat": NOW.timestamp(),
        "exp": (NOW + timedelta(hours=1)).timestamp(),
    }
    forged = jwt.encode(payload, "another-secret-that-is-long-enough-too", algorithm="HS256")
    with pytest.raises(TokenBadSignature):
        verify_access_token(forged, now=NOW)


def test_tampered_payload_is_rejected() -> None:
    token = issue_access_token(principal_id="user-1", tenant_id="tenant-1", role=Role.PARENT, now=NOW)
    header, _, signature = token.split(".")
    other = issue_access_token(principal_id="user-1", tenant_id="tenant-1", role=Role.ADMIN, now=NOW)
    forged_payload = other.split(".")[1]
    with pytest.raises(TokenBadSignature):
        verify_access_token(f"{header}.{forged_payload}.{signature}", now=NOW)


@pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c"])
def test_garbage_is_malformed(token: str) -> None:
    with pytest.raises(TokenMalformed):
        verify_access_token(token, now=NOW)


def test_missing_claim_is_malformed() -> None:
    payload = {"sub": "user-1", "tenant_id": "tenant-1", "iat": NOW.timestamp(), "exp": NOW.timestamp() + 60}
    token = jwt.encode(payload, auth.JWT_SECRET, algorithm=auth.JWT_ALGORITHM)
    with pytest.raises(TokenMalformed):
        verify_access_token(token, now=NOW)


def test_unknown_role_is_malformed() -> None:
    payload = {
        "sub": "user-1",
        "tenant_id": "tenant-1",
        "role": "superuser",
        "iat": NOW.timestamp(),
        "exp": NOW.timestamp() + 60,
    }
    token = jwt.encode(payload, auth.JWT_SECRET, algorithm=auth.JWT_ALGORITHM)
    with pytest.raises(TokenMalformed):
        verify_access_token(token, now=NOW)

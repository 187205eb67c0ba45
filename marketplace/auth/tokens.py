"""JWT issuing and decoding for access, refresh and password-recovery tokens."""

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt

from marketplace.config import settings
from marketplace.errors import InvalidCredentialsError
from marketplace.models.principal import PrincipalRole

ACCESS_TOKEN = "access_token"
REFRESH_TOKEN = "refresh_token"
PASSWORD_RECOVERY = "password_recovery"


@dataclass(frozen=True)
class TokenPair:
    token: str
    refresh_token: str


@dataclass(frozen=True)
class TokenClaims:
    principal_id: uuid.UUID
    role: PrincipalRole
    token_type: str


def _secret_for(token_type: str) -> str:
    if token_type == REFRESH_TOKEN:
        return settings.jwt_refresh_secret
    return settings.jwt_secret


def _encode(
    principal_id: uuid.UUID,
    role: PrincipalRole,
    token_type: str,
    ttl: timedelta,
    now: datetime | None = None,
) -> str:
    now = now or datetime.now(UTC)
    payload = {
        "sub": str(principal_id),
        "role": role.value,
        "type": token_type,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    return jwt.encode(payload, _secret_for(token_type), algorithm=settings.jwt_algorithm)


def issue_token_pair(
    principal_id: uuid.UUID, role: PrincipalRole, now: datetime | None = None
) -> TokenPair:
    """Issue an access token (3 days by default) and a refresh token (7 days)."""
    return TokenPair(
        token=_encode(
            principal_id, role, ACCESS_TOKEN,
            timedelta(days=settings.access_token_ttl_days), now,
        ),
        refresh_token=_encode(
            principal_id, role, REFRESH_TOKEN,
            timedelta(days=settings.refresh_token_ttl_days), now,
        ),
    )


def issue_recovery_token(principal_id: uuid.UUID, role: PrincipalRole) -> str:
    return _encode(
        principal_id, role, PASSWORD_RECOVERY,
        timedelta(minutes=settings.password_recovery_ttl_minutes),
    )


def decode_token(token: str, expected_type: str) -> TokenClaims:
    """Verify signature, expiry and token type. Raises InvalidCredentialsError."""
    try:
        payload = jwt.decode(
            token, _secret_for(expected_type), algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError as exc:
        raise InvalidCredentialsError("Session Expired! Login again to continue.") from exc
    except jwt.InvalidTokenError as exc:
        raise InvalidCredentialsError("Invalid token!") from exc

    if payload.get("type") != expected_type:
        raise InvalidCredentialsError("Invalid token!")

    try:
        return TokenClaims(
            principal_id=uuid.UUID(payload["sub"]),
            role=PrincipalRole(payload["role"]),
            token_type=expected_type,
        )
    except (KeyError, ValueError) as exc:
        raise InvalidCredentialsError("Invalid token!") from exc

"""Bearer-token authentication dependencies for FastAPI."""

import uuid

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.auth.tokens import ACCESS_TOKEN, REFRESH_TOKEN, TokenClaims, decode_token
from marketplace.database import get_db
from marketplace.errors import AccountSuspendedError, ForbiddenError
from marketplace.models.principal import Admin, PrincipalRole, User


class AuthenticatedPrincipal:
    """Container for the verified principal context."""

    def __init__(self, principal_id: uuid.UUID, role: PrincipalRole, principal: User | Admin) -> None:
        self.principal_id = principal_id
        self.role = role
        self.principal = principal

    @property
    def is_admin(self) -> bool:
        return self.role == PrincipalRole.ADMIN


def extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    parts = authorization.strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1].strip() or None


async def _load_principal(db: AsyncSession, claims: TokenClaims) -> User | Admin:
    if claims.role == PrincipalRole.ADMIN:
        stmt = select(Admin).where(Admin.admin_id == claims.principal_id)
    else:
        stmt = select(User).where(User.user_id == claims.principal_id)
    principal = (await db.execute(stmt)).scalar_one_or_none()
    if principal is None:
        raise ForbiddenError("Invalid token!")
    if not principal.is_active:
        raise AccountSuspendedError()
    return principal


async def _authenticate(
    authorization: str | None, db: AsyncSession, token_type: str
) -> AuthenticatedPrincipal:
    token = extract_bearer_token(authorization)
    if token is None:
        raise ForbiddenError("Access denied! No authorization token provided.")
    claims = decode_token(token, token_type)
    principal = await _load_principal(db, claims)
    return AuthenticatedPrincipal(claims.principal_id, claims.role, principal)


async def require_principal(
    authorization: str | None = Header(None, alias="Authorization"),
    db: AsyncSession = Depends(get_db),
) -> AuthenticatedPrincipal:
    """Resolve the caller from an access token."""
    return await _authenticate(authorization, db, ACCESS_TOKEN)


async def require_refresh_principal(
    authorization: str | None = Header(None, alias="Authorization"),
    db: AsyncSession = Depends(get_db),
) -> AuthenticatedPrincipal:
    """Resolve the caller from a refresh token (used by the refresh endpoint only)."""
    return await _authenticate(authorization, db, REFRESH_TOKEN)


async def require_admin(
    auth: AuthenticatedPrincipal = Depends(require_principal),
) -> AuthenticatedPrincipal:
    if not auth.is_admin:
        raise ForbiddenError()
    return auth

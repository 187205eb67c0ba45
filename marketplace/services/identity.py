"""Identity service: login flows, token refresh, password recovery."""

import enum
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.auth.tokens import (
    PASSWORD_RECOVERY,
    TokenPair,
    decode_token,
    issue_recovery_token,
    issue_token_pair,
)
from marketplace.config import settings
from marketplace.errors import (
    AccountLockedError,
    AccountSuspendedError,
    InvalidCredentialsError,
)
from marketplace.models.principal import Admin, PrincipalRole, User, UserType
from marketplace.schemas.identity import PrincipalProjection, TokenResponse
from marketplace.services import email
from marketplace.services.lockout import LoginOutcome, evaluate_login
from marketplace.utils.crypto import hash_password

logger = logging.getLogger(__name__)


class LoginPortal(enum.Enum):
    """Which login endpoint was used. Each one admits a single kind of principal."""
    USER = "user"
    ARTISAN = "artisan"
    ADMIN = "admin"


async def _find_by_email(
    db: AsyncSession, portal: LoginPortal, address: str
) -> User | Admin | None:
    if portal == LoginPortal.ADMIN:
        stmt = select(Admin).where(Admin.email == address)
    else:
        user_type = UserType.ARTISAN if portal == LoginPortal.ARTISAN else UserType.CLIENT
        stmt = select(User).where(User.email == address, User.user_type == user_type)
    return (await db.execute(stmt)).scalar_one_or_none()


async def _find_by_id(
    db: AsyncSession, role: PrincipalRole, principal_id: uuid.UUID
) -> User | Admin | None:
    if role == PrincipalRole.ADMIN:
        stmt = select(Admin).where(Admin.admin_id == principal_id)
    else:
        stmt = select(User).where(User.user_id == principal_id)
    return (await db.execute(stmt)).scalar_one_or_none()


def _token_response(principal: User | Admin, tokens: TokenPair) -> TokenResponse:
    permissions = list(principal.permissions or []) if isinstance(principal, Admin) else None
    return TokenResponse(
        token=tokens.token,
        refresh_token=tokens.refresh_token,
        user=PrincipalProjection.model_validate(principal),
        permissions=permissions,
    )


async def login(
    db: AsyncSession, portal: LoginPortal, address: str, password: str
) -> TokenResponse:
    """Authenticate through the lockout guard and issue a token pair.

    An unknown address is reported exactly like a wrong password.
    """
    principal = await _find_by_email(db, portal, address)
    if principal is None:
        raise InvalidCredentialsError()
    if not principal.is_active:
        raise AccountSuspendedError()

    result = await evaluate_login(db, principal, password)

    if result.outcome == LoginOutcome.LOCKED:
        raise AccountLockedError()
    if result.outcome == LoginOutcome.INVALID_CREDENTIALS:
        raise InvalidCredentialsError()

    logger.info("%s login for %s", portal.value, principal.principal_id)
    return _token_response(principal, result.tokens)


def refresh(principal_id: uuid.UUID, role: PrincipalRole) -> TokenResponse:
    tokens = issue_token_pair(principal_id, role)
    return TokenResponse(token=tokens.token, refresh_token=tokens.refresh_token)


async def forgot_password(db: AsyncSession, portal: LoginPortal, address: str) -> None:
    """Mail a short-lived recovery link if the address belongs to an account.

    Unknown addresses are accepted silently so the endpoint does not reveal
    which emails are registered.
    """
    if portal == LoginPortal.ADMIN:
        stmt = select(Admin).where(Admin.email == address)
    else:
        stmt = select(User).where(User.email == address)
    principal = (await db.execute(stmt)).scalar_one_or_none()
    if principal is None:
        logger.info("Password recovery requested for unknown address")
        return

    token = issue_recovery_token(principal.principal_id, principal.role)
    reset_url = f"{settings.base_url}/reset-password?token={token}"
    await email.notify(
        f"Use the link below to choose a new password:\n\n{reset_url}\n\n"
        f"This link expires in {settings.password_recovery_ttl_minutes} minutes.\n\n"
        f"If you did not request this, ignore this email.",
        principal.email,
        "Password Recovery",
    )


async def reset_password(db: AsyncSession, token: str, password: str) -> None:
    """Set a new password from a recovery token. Also lifts any login lock."""
    claims = decode_token(token, PASSWORD_RECOVERY)
    principal = await _find_by_id(db, claims.role, claims.principal_id)
    if principal is None:
        raise InvalidCredentialsError("Invalid token!")

    principal.password_hash = hash_password(password)
    principal.login_attempts = 0
    principal.is_locked = False
    principal.lock_until = None
    await db.commit()
    logger.info("Password reset for %s", principal.principal_id)

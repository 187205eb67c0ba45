"""Account lockout guard.

Decides, on every authentication attempt, whether to accept, reject or lock
the credential, and keeps the failed-attempt counter consistent:

* a wrong credential increments ``login_attempts``; when the counter already
  stood at ``max_attempts`` the principal is locked for ``lock_duration``
  (the locking attempt is counted too, so the stored value becomes
  ``max_attempts + 1``);
* an active lock wins over a correct credential;
* an expired lock is cleared, together with the counter, before the
  credential is checked;
* a successful login resets a stale counter, records ``last_login`` /
  ``login_time`` and issues a token pair.

The counter is incremented with a single ``UPDATE ... RETURNING`` so
concurrent failures are never under-counted.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from marketplace.auth.tokens import TokenPair, issue_token_pair
from marketplace.config import settings
from marketplace.models.principal import Admin, User
from marketplace.utils.crypto import verify_password

logger = logging.getLogger(__name__)

MAX_LOGIN_ATTEMPTS = 5
LOCK_DURATION = timedelta(minutes=30)


class LoginOutcome(enum.Enum):
    SUCCESS = "success"
    INVALID_CREDENTIALS = "invalid_credentials"
    LOCKED = "locked"


@dataclass(frozen=True)
class LockoutPolicy:
    max_attempts: int = MAX_LOGIN_ATTEMPTS
    lock_duration: timedelta = LOCK_DURATION

    @classmethod
    def from_settings(cls) -> "LockoutPolicy":
        return cls(
            max_attempts=settings.max_login_attempts,
            lock_duration=timedelta(minutes=settings.lock_duration_minutes),
        )

    def is_lock_active(self, principal: User | Admin, now: datetime) -> bool:
        return bool(principal.is_locked and principal.lock_until and principal.lock_until > now)

    def is_lock_expired(self, principal: User | Admin, now: datetime) -> bool:
        return bool(principal.is_locked and not self.is_lock_active(principal, now))

    def should_lock(self, attempts_before_failure: int) -> bool:
        return attempts_before_failure >= self.max_attempts

    def lock_until(self, now: datetime) -> datetime:
        return now + self.lock_duration


@dataclass
class LoginResult:
    outcome: LoginOutcome
    principal: User | Admin
    tokens: TokenPair | None = None


def _apply(principal: User | Admin, **values: object) -> None:
    for key, value in values.items():
        setattr(principal, key, value)


async def _record_failure(db: AsyncSession, principal: User | Admin) -> int:
    """Atomically increment the counter. Returns the post-increment value."""
    await db.flush()
    model = type(principal)
    pk_column = Admin.admin_id if model is Admin else User.user_id
    result = await db.execute(
        update(model)
        .where(pk_column == principal.principal_id)
        .values(login_attempts=model.login_attempts + 1)
        .returning(model.login_attempts)
        .execution_options(synchronize_session=False)
    )
    attempts = result.scalar_one()
    # Reflect the stored value without marking the attribute dirty
    set_committed_value(principal, "login_attempts", attempts)
    return attempts


def _clear_lock(principal: User | Admin) -> None:
    _apply(principal, login_attempts=0, is_locked=False, lock_until=None)


async def evaluate_login(
    db: AsyncSession,
    principal: User | Admin,
    credential: str,
    policy: LockoutPolicy | None = None,
    now: datetime | None = None,
) -> LoginResult:
    """Run one authentication attempt against ``principal``. Commits its writes."""
    policy = policy or LockoutPolicy.from_settings()
    now = now or datetime.now(UTC)

    if policy.is_lock_expired(principal, now):
        logger.info("Lock expired for %s, clearing", principal.principal_id)
        _clear_lock(principal)

    if not verify_password(credential, principal.password_hash):
        attempts = await _record_failure(db, principal)
        if policy.should_lock(attempts - 1):
            _apply(principal, is_locked=True, lock_until=policy.lock_until(now))
            await db.commit()
            logger.warning(
                "Locked %s after %d failed login attempts", principal.principal_id, attempts
            )
            return LoginResult(LoginOutcome.LOCKED, principal)
        await db.commit()
        return LoginResult(LoginOutcome.INVALID_CREDENTIALS, principal)

    if policy.is_lock_active(principal, now):
        await db.commit()
        return LoginResult(LoginOutcome.LOCKED, principal)

    if principal.login_attempts != 0:
        _clear_lock(principal)

    _apply(principal, last_login=principal.login_time, login_time=now)
    await db.commit()

    tokens = issue_token_pair(principal.principal_id, principal.role, now)
    return LoginResult(LoginOutcome.SUCCESS, principal, tokens)


async def unlock(db: AsyncSession, principal: User | Admin) -> None:
    """Administrative unlock: clear the lock and the counter, reactivate."""
    _clear_lock(principal)
    principal.is_active = True
    await db.commit()
    logger.info("Unlocked %s", principal.principal_id)

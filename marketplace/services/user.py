"""User service: registration, email confirmation, administrative account actions."""

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import commit_unique
from marketplace.errors import DuplicateEntryError, MarketplaceError, NotFoundError
from marketplace.models.principal import User, UserType
from marketplace.schemas.user import UserCreate
from marketplace.services import email, lockout
from marketplace.utils.crypto import generate_verification_code, hash_password

logger = logging.getLogger(__name__)


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    result = await db.execute(select(User).where(User.user_id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return user


async def register_user(db: AsyncSession, data: UserCreate) -> User:
    """Create a client or artisan account and mail the confirmation code.

    Email and phone number must both be unused.
    """
    conditions = [User.email == data.email]
    if data.phone_number:
        conditions.append(User.phone_number == data.phone_number)
    existing = await db.execute(select(User.user_id).where(or_(*conditions)))
    if existing.first() is not None:
        raise DuplicateEntryError()

    code = generate_verification_code()
    user = User(
        user_id=uuid.uuid4(),
        email=data.email,
        firstname=data.firstname,
        lastname=data.lastname,
        name=f"{data.firstname} {data.lastname}",
        phone_number=data.phone_number,
        image_url=data.image_url,
        address=data.address,
        user_type=UserType(data.user_type),
        password_hash=hash_password(data.password),
        verification_code=code,
    )
    db.add(user)
    await commit_unique(db)
    await db.refresh(user)
    logger.info("Registered %s %s", user.user_type.value, user.user_id)

    await email.notify(
        f"Welcome, {user.firstname}!\n\n"
        f"Your email confirmation code is {code}.",
        user.email,
        "Welcome to the marketplace",
    )
    return user


async def confirm_email(db: AsyncSession, address: str, code: str) -> User:
    result = await db.execute(select(User).where(User.email == address))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError()
    if user.is_email_verified:
        return user
    if not user.verification_code or user.verification_code != code:
        raise MarketplaceError("Invalid verification code")

    user.is_email_verified = True
    user.verification_code = None
    user.updated_on = datetime.now(UTC)
    await db.commit()
    await db.refresh(user)
    logger.info("Email confirmed for %s", user.user_id)
    return user


async def unlock_user(db: AsyncSession, user_id: uuid.UUID, admin_id: uuid.UUID) -> User:
    user = await get_user(db, user_id)
    user.updated_on = datetime.now(UTC)
    user.updated_by = admin_id
    await lockout.unlock(db, user)
    await db.refresh(user)
    return user


async def set_active(
    db: AsyncSession, user_id: uuid.UUID, active: bool, admin_id: uuid.UUID
) -> User:
    """Suspend or reinstate an account. Suspended accounts cannot log in."""
    user = await get_user(db, user_id)
    user.is_active = active
    user.updated_on = datetime.now(UTC)
    user.updated_by = admin_id
    await db.commit()
    await db.refresh(user)
    logger.info("User %s %s by %s", user_id, "activated" if active else "deactivated", admin_id)
    return user

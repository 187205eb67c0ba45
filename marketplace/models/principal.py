"""User and Admin models: the credentialed principals subject to login lockout."""

import enum
import uuid
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import ARRAY, Boolean, DateTime, Enum, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.database import Base


class UserType(enum.Enum):
    CLIENT = "client"
    ARTISAN = "artisan"


class PrincipalRole(enum.Enum):
    """Role claim carried in issued tokens."""
    USER = "user"
    ARTISAN = "artisan"
    ADMIN = "admin"


class LockoutMixin:
    """Columns consumed by the login lockout guard, shared by users and admins."""

    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    login_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    lock_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    login_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_login: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class User(LockoutMixin, Base):
    __tablename__ = "users"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    firstname: Mapped[str] = mapped_column(String(64), nullable=False)
    lastname: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str | None] = mapped_column(String(130), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(20), unique=True, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_type: Mapped[UserType] = mapped_column(
        Enum(UserType, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=UserType.CLIENT,
    )
    is_email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verification_code: Mapped[str | None] = mapped_column(String(6), nullable=True)
    rating: Mapped[Decimal] = mapped_column(
        Numeric(3, 2), nullable=False, default=Decimal("0.00")
    )
    reviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_on: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    @property
    def principal_id(self) -> uuid.UUID:
        return self.user_id

    @property
    def role(self) -> PrincipalRole:
        if self.user_type == UserType.ARTISAN:
            return PrincipalRole.ARTISAN
        return PrincipalRole.USER


class Admin(LockoutMixin, Base):
    __tablename__ = "admins"

    admin_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    firstname: Mapped[str] = mapped_column(String(64), nullable=False)
    lastname: Mapped[str] = mapped_column(String(64), nullable=False)
    image_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    permissions: Mapped[list[str] | None] = mapped_column(
        ARRAY(String(64)), nullable=True, default=list
    )
    created_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    @property
    def principal_id(self) -> uuid.UUID:
        return self.admin_id

    @property
    def role(self) -> PrincipalRole:
        return PrincipalRole.ADMIN

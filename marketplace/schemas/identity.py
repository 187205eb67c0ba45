"""Pydantic schemas for login, token refresh and password recovery."""

import re
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

_EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
)


def normalize_email(v: str) -> str:
    v = v.strip().lower()
    if not _EMAIL_PATTERN.match(v):
        raise ValueError("Invalid email address")
    return v


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=320)
    password: str = Field(..., min_length=1, max_length=256)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class ForgotPasswordRequest(BaseModel):
    email: str = Field(..., max_length=320)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., max_length=2048)
    password: str = Field(..., min_length=8, max_length=256)


class PrincipalProjection(BaseModel):
    """Principal as returned after login. Never carries the credential hash."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID = Field(validation_alias="principal_id")
    email: str
    firstname: str
    lastname: str
    role: str
    image_url: str | None = None
    is_active: bool
    last_login: datetime | None = None
    login_time: datetime | None = None

    @field_validator("role", mode="before")
    @classmethod
    def serialize_role(cls, v: object) -> str:
        if hasattr(v, "value"):
            return v.value
        return str(v)


class TokenResponse(BaseModel):
    token: str
    refresh_token: str
    user: PrincipalProjection | None = None
    permissions: list[str] | None = None

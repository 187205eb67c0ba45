"""Pydantic v2 schemas for user registration and profiles."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from marketplace.schemas.identity import normalize_email


class UserCreate(BaseModel):
    firstname: str = Field(..., min_length=1, max_length=64)
    lastname: str = Field(..., min_length=1, max_length=64)
    email: str = Field(..., max_length=320)
    password: str = Field(..., min_length=8, max_length=256)
    phone_number: str | None = Field(None, min_length=7, max_length=20)
    image_url: str | None = Field(None, max_length=2048)
    address: str | None = Field(None, max_length=1024)
    user_type: str = Field("client", pattern="^(client|artisan)$")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("firstname", "lastname", "phone_number")
    @classmethod
    def strip(cls, v: str | None) -> str | None:
        return v.strip() if v is not None else v


class EmailConfirmation(BaseModel):
    email: str = Field(..., max_length=320)
    code: str = Field(..., min_length=6, max_length=6)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: uuid.UUID
    email: str
    firstname: str
    lastname: str
    name: str | None
    phone_number: str | None
    image_url: str | None
    address: str | None
    user_type: str
    is_active: bool
    is_email_verified: bool
    is_locked: bool
    rating: Decimal
    reviews: int
    last_login: datetime | None
    created_on: datetime

    @field_validator("user_type", mode="before")
    @classmethod
    def serialize_user_type(cls, v: object) -> str:
        if hasattr(v, "value"):
            return v.value
        return str(v)

"""Pydantic v2 schemas for Job endpoints."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class JobCreate(BaseModel):
    """Requester posts a new job. The requester is the authenticated caller."""
    title: str = Field(..., min_length=1, max_length=256)
    description: str = Field(..., min_length=1, max_length=8192)
    category_id: uuid.UUID | None = None
    budget: Decimal | None = Field(None, gt=0, max_digits=12, decimal_places=2)

    @field_validator("title", "description")
    @classmethod
    def strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class JobUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=256)
    description: str | None = Field(None, min_length=1, max_length=8192)
    category_id: uuid.UUID | None = None
    budget: Decimal | None = Field(None, gt=0, max_digits=12, decimal_places=2)


class JobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    job_id: uuid.UUID
    title: str
    description: str
    category_id: uuid.UUID | None
    user_id: uuid.UUID
    artisan_id: uuid.UUID | None
    status: str
    budget: Decimal | None
    duration: datetime | None
    request_id: uuid.UUID | None
    created_on: datetime
    updated_on: datetime | None
    updated_by: uuid.UUID | None

    @field_validator("status", mode="before")
    @classmethod
    def serialize_status(cls, v: object) -> str:
        if hasattr(v, "value"):
            return v.value
        return str(v)

"""Pydantic v2 schemas for the request (offer) lifecycle endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from marketplace.config import settings


class RequestCreate(BaseModel):
    """Requester offers a job to an artisan.

    ``timeout_hours`` is how long the artisan has to answer before the
    request expires and the job is reopened.
    """
    job_id: uuid.UUID
    artisan_id: uuid.UUID
    user_id: uuid.UUID
    timeout_hours: int = Field(default_factory=lambda: settings.default_request_timeout_hours, ge=1)

    @field_validator("timeout_hours")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        if v > settings.max_request_timeout_hours:
            raise ValueError(f"timeout_hours must be <= {settings.max_request_timeout_hours}")
        return v


class RequestDecline(BaseModel):
    rejection_reason: str | None = Field(None, max_length=1024)


class RequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    request_id: uuid.UUID
    job_id: uuid.UUID
    artisan_id: uuid.UUID
    user_id: uuid.UUID
    status: str
    duration: datetime
    rejection_reason: str | None
    created_on: datetime
    created_by: uuid.UUID | None
    updated_on: datetime | None
    updated_by: uuid.UUID | None

    @field_validator("status", mode="before")
    @classmethod
    def serialize_status(cls, v: object) -> str:
        if hasattr(v, "value"):
            return v.value
        return str(v)

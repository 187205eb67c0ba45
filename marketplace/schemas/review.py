"""Pydantic v2 schemas for Reviews."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ReviewCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=256)
    description: str = Field(..., min_length=1, max_length=4096)
    rating: Decimal = Field(..., ge=1, le=5)

    @field_validator("rating")
    @classmethod
    def validate_half_steps(cls, v: Decimal) -> Decimal:
        if (v * 2) % 1 != 0:
            raise ValueError("Rating must be a multiple of 0.5")
        return v


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    review_id: uuid.UUID
    job_id: uuid.UUID
    user_id: uuid.UUID
    artisan_id: uuid.UUID
    title: str
    description: str
    rating: Decimal
    created_on: datetime

"""Validation rules on request bodies."""

import uuid

import pytest
from pydantic import ValidationError

from marketplace.config import settings
from marketplace.schemas.identity import LoginRequest
from marketplace.schemas.request import RequestCreate
from marketplace.schemas.review import ReviewCreate


def _request_body(**overrides: object) -> dict:
    body = {"job_id": uuid.uuid4(), "artisan_id": uuid.uuid4(), "user_id": uuid.uuid4()}
    body.update(overrides)
    return body


def test_request_timeout_defaults_from_settings() -> None:
    object.__setattr__(settings, "default_request_timeout_hours", 12)
    assert RequestCreate(**_request_body()).timeout_hours == 12


def test_request_timeout_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        RequestCreate(**_request_body(timeout_hours=0))


def test_request_timeout_capped() -> None:
    with pytest.raises(ValidationError):
        RequestCreate(**_request_body(timeout_hours=settings.max_request_timeout_hours + 1))


def test_login_email_normalized() -> None:
    assert LoginRequest(email="  Ada@Example.COM ", password="x").email == "ada@example.com"


def test_login_email_invalid() -> None:
    with pytest.raises(ValidationError):
        LoginRequest(email="not-an-email", password="x")


@pytest.mark.parametrize("rating", ["1", "2.5", "5"])
def test_review_rating_half_steps(rating: str) -> None:
    assert ReviewCreate(title="t", description="d", rating=rating).rating == float(rating)

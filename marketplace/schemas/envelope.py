"""Response envelope shared by every resource endpoint.

A new envelope is built for each response; nothing here is module-level
mutable state.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    model_config = ConfigDict(populate_by_name=True)

    has_errors: bool = Field(False, alias="hasErrors")
    has_results: bool = Field(True, alias="hasResults")
    successful: bool = True
    message: str | None = None
    result: T | None = None


def single_response(result: T, message: str | None = None) -> Envelope[T]:
    return Envelope(result=result, message=message)


def empty_response(message: str) -> Envelope:
    """Successful call that produced nothing (e.g. a timeout check with no expiry)."""
    return Envelope(has_results=False, message=message)


def error_response(message: str) -> dict:
    """Serialized error envelope for exception handlers."""
    envelope = Envelope(has_errors=True, has_results=False, successful=False, message=message)
    return envelope.model_dump(by_alias=True, exclude_none=True)

"""Typed service errors.

Each error is an HTTPException so service code can raise it directly, the same
way the routers and services raise plain HTTPExceptions. The application
handlers in ``marketplace.main`` render every one of them as an error envelope.
"""

from fastapi import HTTPException

PARAM_MISSING = "One or more of the required parameters was missing."
NO_RESULT = "Record does not exist."
DUPLICATE_ENTRY = "Record already exist."
INVALID_CREDENTIALS = "Invalid credentials."
ACCOUNT_LOCKED = "Maximum login attempts exceeded. Account temporarily locked."
ACCOUNT_SUSPENDED = "Account temporarily suspended."
FAILED_REQUEST = "Request failed."


class MarketplaceError(HTTPException):
    status_code = 400
    default_message = FAILED_REQUEST

    def __init__(self, message: str | None = None) -> None:
        super().__init__(status_code=self.status_code, detail=message or self.default_message)


class ParamMissingError(MarketplaceError):
    status_code = 400
    default_message = PARAM_MISSING


class NotFoundError(MarketplaceError):
    status_code = 404
    default_message = NO_RESULT


class DuplicateEntryError(MarketplaceError):
    status_code = 409
    default_message = DUPLICATE_ENTRY


class InvalidTransitionError(MarketplaceError):
    status_code = 409


class ForbiddenError(MarketplaceError):
    status_code = 403
    default_message = "Access denied!"


class InvalidCredentialsError(MarketplaceError):
    status_code = 401
    default_message = INVALID_CREDENTIALS


class AccountLockedError(MarketplaceError):
    status_code = 423
    default_message = ACCOUNT_LOCKED


class AccountSuspendedError(MarketplaceError):
    status_code = 403
    default_message = ACCOUNT_SUSPENDED


class FailedDependencyError(MarketplaceError):
    status_code = 424

"""User registration, profile and administrative account endpoints."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.auth.middleware import AuthenticatedPrincipal, require_admin, require_principal
from marketplace.auth.rate_limit import check_rate_limit
from marketplace.database import get_db
from marketplace.schemas.envelope import Envelope, single_response
from marketplace.schemas.user import EmailConfirmation, UserCreate, UserResponse
from marketplace.services import user as user_service

router = APIRouter(prefix="/users", tags=["users"], dependencies=[Depends(check_rate_limit)])


@router.post(
    "",
    response_model=Envelope[UserResponse],
    response_model_exclude_none=True,
    status_code=201,
)
async def register_user(
    data: UserCreate,
    db: AsyncSession = Depends(get_db),
) -> Envelope[UserResponse]:
    """Sign up as a client or an artisan. A confirmation code is emailed."""
    user = await user_service.register_user(db, data)
    return single_response(UserResponse.model_validate(user), "Account created.")


@router.post(
    "/email-confirmation",
    response_model=Envelope[UserResponse],
    response_model_exclude_none=True,
)
async def confirm_email(
    data: EmailConfirmation,
    db: AsyncSession = Depends(get_db),
) -> Envelope[UserResponse]:
    user = await user_service.confirm_email(db, data.email, data.code)
    return single_response(UserResponse.model_validate(user), "Email confirmed.")


@router.get(
    "/{user_id}",
    response_model=Envelope[UserResponse],
    response_model_exclude_none=True,
)
async def get_user(
    user_id: uuid.UUID,
    auth: AuthenticatedPrincipal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
) -> Envelope[UserResponse]:
    user = await user_service.get_user(db, user_id)
    return single_response(UserResponse.model_validate(user))


@router.put(
    "/{user_id}/unlock",
    response_model=Envelope[UserResponse],
    response_model_exclude_none=True,
)
async def unlock_user(
    user_id: uuid.UUID,
    auth: AuthenticatedPrincipal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> Envelope[UserResponse]:
    """Clear a login lock and the failed-attempt counter."""
    user = await user_service.unlock_user(db, user_id, auth.principal_id)
    return single_response(UserResponse.model_validate(user), "Account unlocked.")


@router.put(
    "/{user_id}/deactivate",
    response_model=Envelope[UserResponse],
    response_model_exclude_none=True,
)
async def deactivate_user(
    user_id: uuid.UUID,
    auth: AuthenticatedPrincipal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> Envelope[UserResponse]:
    user = await user_service.set_active(db, user_id, False, auth.principal_id)
    return single_response(UserResponse.model_validate(user), "Account deactivated.")


@router.put(
    "/{user_id}/activate",
    response_model=Envelope[UserResponse],
    response_model_exclude_none=True,
)
async def activate_user(
    user_id: uuid.UUID,
    auth: AuthenticatedPrincipal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> Envelope[UserResponse]:
    user = await user_service.set_active(db, user_id, True, auth.principal_id)
    return single_response(UserResponse.model_validate(user), "Account activated.")

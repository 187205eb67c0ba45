"""Identity endpoints: login, token refresh, password recovery."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.auth.middleware import AuthenticatedPrincipal, require_refresh_principal
from marketplace.auth.rate_limit import check_rate_limit
from marketplace.database import get_db
from marketplace.schemas.envelope import Envelope, empty_response
from marketplace.schemas.identity import (
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    TokenResponse,
)
from marketplace.services import identity as identity_service
from marketplace.services.identity import LoginPortal

router = APIRouter(
    prefix="/identity", tags=["identity"], dependencies=[Depends(check_rate_limit)]
)

RECOVERY_SENT = "If the address is registered, a recovery link has been sent."


@router.post("/token", response_model=TokenResponse, response_model_exclude_none=True)
async def user_login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> TokenResponse:
    """Client login."""
    return await identity_service.login(db, LoginPortal.USER, data.email, data.password)


@router.post("/artisan/token", response_model=TokenResponse, response_model_exclude_none=True)
async def artisan_login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> TokenResponse:
    return await identity_service.login(db, LoginPortal.ARTISAN, data.email, data.password)


@router.post("/admin/token", response_model=TokenResponse, response_model_exclude_none=True)
async def admin_login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> TokenResponse:
    """Admin login. The response also lists the admin's permissions."""
    return await identity_service.login(db, LoginPortal.ADMIN, data.email, data.password)


@router.post("/refresh", response_model=TokenResponse, response_model_exclude_none=True)
async def refresh_token(
    auth: AuthenticatedPrincipal = Depends(require_refresh_principal),
) -> TokenResponse:
    """Exchange a refresh token (as the bearer) for a new token pair."""
    return identity_service.refresh(auth.principal_id, auth.role)


@router.post("/forgot-password", response_model=Envelope, response_model_exclude_none=True)
async def forgot_password(
    data: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
) -> Envelope:
    await identity_service.forgot_password(db, LoginPortal.USER, data.email)
    return empty_response(RECOVERY_SENT)


@router.post("/admin/forgot-password", response_model=Envelope, response_model_exclude_none=True)
async def admin_forgot_password(
    data: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
) -> Envelope:
    await identity_service.forgot_password(db, LoginPortal.ADMIN, data.email)
    return empty_response(RECOVERY_SENT)


@router.post("/reset-password", response_model=Envelope, response_model_exclude_none=True)
async def reset_password(
    data: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
) -> Envelope:
    """Set a new password using the token from the recovery email."""
    await identity_service.reset_password(db, data.token, data.password)
    return empty_response("Password updated. You can now log in.")

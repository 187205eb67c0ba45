"""Request (offer) lifecycle endpoints."""

import uuid

import redis.asyncio as aioredis
from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.auth.middleware import AuthenticatedPrincipal, require_principal
from marketplace.auth.rate_limit import check_rate_limit
from marketplace.database import get_db
from marketplace.errors import ForbiddenError
from marketplace.redis import get_redis
from marketplace.schemas.envelope import Envelope, empty_response, single_response
from marketplace.schemas.request import RequestCreate, RequestDecline, RequestResponse
from marketplace.services import request as request_service
from marketplace.services.timeout_queue import cancel_timeout, enqueue_timeout

router = APIRouter(
    prefix="/requests", tags=["requests"], dependencies=[Depends(check_rate_limit)]
)


@router.post(
    "",
    response_model=Envelope[RequestResponse],
    response_model_exclude_none=True,
    status_code=201,
)
async def create_request(
    data: RequestCreate,
    auth: AuthenticatedPrincipal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> Envelope[RequestResponse]:
    """Requester offers one of their jobs to an artisan."""
    if data.user_id != auth.principal_id:
        raise ForbiddenError("Requests can only be sent on your own behalf")
    request = await request_service.create_request(
        db, data.job_id, data.artisan_id, data.user_id, data.timeout_hours
    )
    await enqueue_timeout(redis, request.job_id, request.duration.timestamp())
    return single_response(RequestResponse.model_validate(request), "Request sent.")


@router.put(
    "/timeout/{job_id}",
    response_model=Envelope[RequestResponse],
    response_model_exclude_none=True,
)
async def timeout_check(
    job_id: uuid.UUID,
    auth: AuthenticatedPrincipal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> Envelope[RequestResponse]:
    """Expire the job's pending request if its deadline has passed. Safe to repeat."""
    request = await request_service.timeout_check(db, job_id, auth.principal_id)
    if request is None:
        return empty_response("No pending request has expired for this job.")
    await cancel_timeout(redis, job_id)
    return single_response(RequestResponse.model_validate(request), "Request timed out.")


@router.get(
    "/{request_id}",
    response_model=Envelope[RequestResponse],
    response_model_exclude_none=True,
)
async def get_request(
    request_id: uuid.UUID,
    auth: AuthenticatedPrincipal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
) -> Envelope[RequestResponse]:
    request = await request_service.get_request(db, request_id, auth.principal_id, auth.is_admin)
    return single_response(RequestResponse.model_validate(request))


@router.put(
    "/{request_id}/accept",
    response_model=Envelope[RequestResponse],
    response_model_exclude_none=True,
)
async def accept_request(
    request_id: uuid.UUID,
    auth: AuthenticatedPrincipal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> Envelope[RequestResponse]:
    request = await request_service.accept_request(db, request_id, auth.principal_id)
    await cancel_timeout(redis, request.job_id)
    return single_response(RequestResponse.model_validate(request), "Request accepted.")


@router.put(
    "/{request_id}/decline",
    response_model=Envelope[RequestResponse],
    response_model_exclude_none=True,
)
async def decline_request(
    request_id: uuid.UUID,
    data: RequestDecline | None = Body(None),
    auth: AuthenticatedPrincipal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> Envelope[RequestResponse]:
    reason = data.rejection_reason if data else None
    request = await request_service.decline_request(db, request_id, auth.principal_id, reason)
    await cancel_timeout(redis, request.job_id)
    return single_response(RequestResponse.model_validate(request), "Request declined.")


@router.put(
    "/{request_id}/cancel",
    response_model=Envelope[RequestResponse],
    response_model_exclude_none=True,
)
async def cancel_request(
    request_id: uuid.UUID,
    auth: AuthenticatedPrincipal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> Envelope[RequestResponse]:
    request = await request_service.cancel_request(db, request_id, auth.principal_id)
    await cancel_timeout(redis, request.job_id)
    return single_response(RequestResponse.model_validate(request), "Request canceled.")

"""Review endpoints."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.auth.middleware import AuthenticatedPrincipal, require_principal
from marketplace.auth.rate_limit import check_rate_limit
from marketplace.database import get_db
from marketplace.schemas.envelope import Envelope, single_response
from marketplace.schemas.review import ReviewCreate, ReviewResponse
from marketplace.services import review as review_service

router = APIRouter(tags=["reviews"], dependencies=[Depends(check_rate_limit)])


@router.post(
    "/jobs/{job_id}/reviews",
    response_model=Envelope[ReviewResponse],
    response_model_exclude_none=True,
    status_code=201,
)
async def submit_review(
    job_id: uuid.UUID,
    data: ReviewCreate,
    auth: AuthenticatedPrincipal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
) -> Envelope[ReviewResponse]:
    """Requester rates the artisan who took the job."""
    review = await review_service.submit_review(db, job_id, auth.principal_id, data)
    return single_response(ReviewResponse.model_validate(review), "Review submitted.")


@router.get(
    "/users/{artisan_id}/reviews",
    response_model=Envelope[list[ReviewResponse]],
    response_model_exclude_none=True,
)
async def get_artisan_reviews(
    artisan_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> Envelope[list[ReviewResponse]]:
    """All reviews received by an artisan, newest first."""
    reviews = await review_service.get_reviews_for_artisan(db, artisan_id)
    return single_response([ReviewResponse.model_validate(r) for r in reviews])

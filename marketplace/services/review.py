"""Review and artisan rating business logic."""

import uuid
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.errors import (
    DuplicateEntryError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
)
from marketplace.models.job import Job, JobStatus
from marketplace.models.principal import User
from marketplace.models.review import Review
from marketplace.schemas.review import ReviewCreate


async def submit_review(
    db: AsyncSession,
    job_id: uuid.UUID,
    reviewer_id: uuid.UUID,
    data: ReviewCreate,
) -> Review:
    """Requester reviews the artisan who took the job. One review per job."""
    result = await db.execute(select(Job).where(Job.job_id == job_id))
    job = result.scalar_one_or_none()
    if job is None:
        raise NotFoundError("Job not found")

    if job.status not in (JobStatus.ASSIGNED, JobStatus.COMPLETED) or job.artisan_id is None:
        raise InvalidTransitionError("Can only review assigned or completed jobs")

    if reviewer_id != job.user_id:
        raise ForbiddenError("Only the requester can review this job")

    existing = await db.execute(
        select(Review).where(Review.job_id == job_id, Review.user_id == reviewer_id)
    )
    if existing.scalar_one_or_none() is not None:
        raise DuplicateEntryError("You have already reviewed this job")

    review = Review(
        review_id=uuid.uuid4(),
        job_id=job_id,
        user_id=reviewer_id,
        artisan_id=job.artisan_id,
        title=data.title.strip(),
        description=data.description.strip(),
        rating=data.rating,
    )
    db.add(review)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise DuplicateEntryError("You have already reviewed this job")

    await _update_rating(db, job.artisan_id)

    await db.commit()
    await db.refresh(review)
    return review


async def _update_rating(db: AsyncSession, artisan_id: uuid.UUID) -> None:
    """Recompute the artisan's average rating and review count.

    The artisan row is taken FOR NO KEY UPDATE: review inserts hold a key-share
    lock on it through their foreign key and must not block the recompute.
    """
    artisan = (
        await db.execute(
            select(User).where(User.user_id == artisan_id).with_for_update(key_share=True)
        )
    ).scalar_one()
    # Aggregate after taking the lock so concurrent reviews are all counted
    result = await db.execute(
        select(func.avg(Review.rating), func.count()).where(Review.artisan_id == artisan_id)
    )
    average, count = result.one()

    artisan.reviews = count
    artisan.rating = (
        Decimal(average).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        if average is not None
        else Decimal("0.00")
    )


async def get_reviews_for_artisan(db: AsyncSession, artisan_id: uuid.UUID) -> list[Review]:
    """Every review received by an artisan, newest first. Matches ``User.reviews``."""
    result = await db.execute(
        select(Review)
        .where(Review.artisan_id == artisan_id)
        .order_by(Review.created_on.desc())
    )
    return list(result.scalars().all())

"""Job posting business logic."""

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import commit_unique
from marketplace.errors import (
    DuplicateEntryError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ParamMissingError,
)
from marketplace.models.category import Category
from marketplace.models.job import Job, JobStatus
from marketplace.schemas.job import JobCreate, JobUpdate

logger = logging.getLogger(__name__)


async def load_job(db: AsyncSession, job_id: uuid.UUID, for_update: bool = False) -> Job:
    """Fetch a job or raise 404. ``for_update`` takes a row lock until commit."""
    stmt = select(Job).where(Job.job_id == job_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    job = (await db.execute(stmt)).scalar_one_or_none()
    if job is None:
        raise NotFoundError("Job not found")
    return job


async def _assert_category(db: AsyncSession, category_id: uuid.UUID | None) -> None:
    if category_id is None:
        return
    result = await db.execute(select(Category).where(Category.category_id == category_id))
    if result.scalar_one_or_none() is None:
        raise NotFoundError("Category not found")


async def _assert_unique_title(
    db: AsyncSession, title: str, exclude_job_id: uuid.UUID | None = None
) -> None:
    stmt = select(Job.job_id).where(Job.title == title)
    if exclude_job_id is not None:
        stmt = stmt.where(Job.job_id != exclude_job_id)
    if (await db.execute(stmt)).first() is not None:
        raise DuplicateEntryError()


async def create_job(db: AsyncSession, requester_id: uuid.UUID, data: JobCreate) -> Job:
    """Requester posts a job. Titles are unique across the marketplace."""
    await _assert_unique_title(db, data.title)
    await _assert_category(db, data.category_id)

    job = Job(
        job_id=uuid.uuid4(),
        title=data.title,
        description=data.description,
        category_id=data.category_id,
        user_id=requester_id,
        status=JobStatus.NEW,
        budget=data.budget,
    )
    db.add(job)
    await commit_unique(db)
    await db.refresh(job)
    logger.info("Job %s created by %s", job.job_id, requester_id)
    return job


async def get_job(db: AsyncSession, job_id: uuid.UUID) -> Job:
    return await load_job(db, job_id)


async def update_job(
    db: AsyncSession, job_id: uuid.UUID, actor_id: uuid.UUID, data: JobUpdate
) -> Job:
    """Requester edits an open job. Jobs with an outstanding or accepted offer are frozen."""
    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise ParamMissingError()

    job = await load_job(db, job_id, for_update=True)
    if job.user_id != actor_id:
        raise ForbiddenError("Only the requester can update this job")
    if job.status != JobStatus.NEW:
        raise InvalidTransitionError(f"Cannot update a job in status {job.status.value}")

    if "title" in changes and changes["title"] != job.title:
        changes["title"] = changes["title"].strip()
        await _assert_unique_title(db, changes["title"], exclude_job_id=job_id)
    if "category_id" in changes:
        await _assert_category(db, changes["category_id"])

    for key, value in changes.items():
        setattr(job, key, value)
    job.updated_on = datetime.now(UTC)
    job.updated_by = actor_id

    await commit_unique(db)
    await db.refresh(job)
    return job


async def complete_job(db: AsyncSession, job_id: uuid.UUID, actor_id: uuid.UUID) -> Job:
    """Requester marks an assigned job as done."""
    job = await load_job(db, job_id, for_update=True)
    if job.user_id != actor_id:
        raise ForbiddenError("Only the requester can complete this job")
    if job.status != JobStatus.ASSIGNED:
        raise InvalidTransitionError(
            f"Cannot transition from {job.status.value} to {JobStatus.COMPLETED.value}"
        )

    job.status = JobStatus.COMPLETED
    job.updated_on = datetime.now(UTC)
    job.updated_by = actor_id
    await db.commit()
    await db.refresh(job)
    return job

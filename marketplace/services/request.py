"""Request lifecycle: offering a job to an artisan and resolving the offer.

A request starts NEW and ends in exactly one of ACCEPTED, DECLINED,
CANCELED or TIMEOUT. Every transition writes the Request and its Job in a
single transaction while holding row locks on both, so the pair is never
observed half-updated. Notifications go out after the commit.
"""

import logging
import uuid
from datetime import UTC, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.errors import (
    FailedDependencyError,
    ForbiddenError,
    InvalidTransitionError,
    MarketplaceError,
    NotFoundError,
    ParamMissingError,
)
from marketplace.models.job import Job, JobStatus
from marketplace.models.principal import User, UserType
from marketplace.models.request import VALID_TRANSITIONS, Request, RequestStatus
from marketplace.services import email
from marketplace.services.job import load_job

logger = logging.getLogger(__name__)


async def _get_request(
    db: AsyncSession, request_id: uuid.UUID, for_update: bool = False
) -> Request:
    stmt = select(Request).where(Request.request_id == request_id)
    if for_update:
        # Reload so status reflects whatever committed while we waited for the lock
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    request = (await db.execute(stmt)).scalar_one_or_none()
    if request is None:
        raise NotFoundError("Request not found")
    return request


async def _get_user(db: AsyncSession, user_id: uuid.UUID | None) -> User | None:
    if user_id is None:
        return None
    result = await db.execute(select(User).where(User.user_id == user_id))
    return result.scalar_one_or_none()


async def _email_of(db: AsyncSession, user_id: uuid.UUID | None) -> str | None:
    user = await _get_user(db, user_id)
    return user.email if user else None


def _assert_transition(current: RequestStatus, target: RequestStatus) -> None:
    allowed = VALID_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise InvalidTransitionError(
            f"Cannot transition from {current.value} to {target.value}"
        )


async def _lock_for_transition(
    db: AsyncSession, request_id: uuid.UUID
) -> tuple[Request, Job | None]:
    """Lock a request's job and then the request itself.

    Locks are always taken job first, the same order timeout_check uses, so
    a transition racing an expiry waits instead of deadlocking.
    """
    request = await _get_request(db, request_id)
    try:
        job = await load_job(db, request.job_id, for_update=True)
    except NotFoundError:
        job = None
    request = await _get_request(db, request_id, for_update=True)
    return request, job


def _assert_linked(job: Job | None, request: Request) -> Job:
    """The job must exist and still point at this request."""
    if job is None:
        raise FailedDependencyError("Job for this request no longer exists")
    if job.request_id != request.request_id:
        raise InvalidTransitionError("Request is no longer the active offer for this job")
    return job


def _reopen(job: Job, actor_id: uuid.UUID | None, now: datetime) -> None:
    job.status = JobStatus.NEW
    job.artisan_id = None
    job.duration = None
    job.updated_on = now
    job.updated_by = actor_id


async def create_request(
    db: AsyncSession,
    job_id: uuid.UUID | None,
    artisan_id: uuid.UUID | None,
    requester_id: uuid.UUID | None,
    timeout_hours: int | None,
    now: datetime | None = None,
) -> Request:
    """Offer an open job to an artisan.

    The job moves NEW -> PENDING and records the new request's deadline.
    """
    if job_id is None or artisan_id is None or requester_id is None or timeout_hours is None:
        raise ParamMissingError()
    if timeout_hours <= 0:
        raise MarketplaceError("timeout_hours must be a positive number of hours")
    if artisan_id == requester_id:
        raise MarketplaceError("Cannot send a request to yourself")

    now = now or datetime.now(UTC)

    job = await load_job(db, job_id, for_update=True)
    if job.user_id != requester_id:
        raise ForbiddenError("Only the job's requester can send requests for it")
    if job.status != JobStatus.NEW:
        raise InvalidTransitionError(
            f"Job is {job.status.value} and cannot take a new request"
        )

    artisan = await _get_user(db, artisan_id)
    if artisan is None or artisan.user_type != UserType.ARTISAN or not artisan.is_active:
        raise NotFoundError("Artisan not found")

    deadline = now + timedelta(hours=timeout_hours)
    request = Request(
        request_id=uuid.uuid4(),
        job_id=job.job_id,
        artisan_id=artisan_id,
        user_id=requester_id,
        status=RequestStatus.NEW,
        duration=deadline,
        created_on=now,
        created_by=requester_id,
    )
    db.add(request)

    job.status = JobStatus.PENDING
    job.duration = deadline
    job.request_id = request.request_id
    job.updated_on = now
    job.updated_by = requester_id

    await db.commit()
    await db.refresh(request)
    logger.info(
        "Request %s sent for job %s to artisan %s (expires %s)",
        request.request_id, job_id, artisan_id, deadline.isoformat(),
    )

    await email.notify(
        f"You have a new job request: {job.title}. "
        f"Respond before {deadline.isoformat()}.",
        artisan.email,
        "New Job Request",
    )
    return request


async def get_request(
    db: AsyncSession,
    request_id: uuid.UUID,
    viewer_id: uuid.UUID,
    is_admin: bool = False,
) -> Request:
    """Parties to a request (and admins) may view it."""
    request = await _get_request(db, request_id)
    if not is_admin and viewer_id not in (request.user_id, request.artisan_id):
        raise ForbiddenError()
    return request


async def accept_request(
    db: AsyncSession, request_id: uuid.UUID | None, artisan_id: uuid.UUID
) -> Request:
    """Artisan takes the job. The job is assigned to them."""
    if request_id is None:
        raise ParamMissingError()

    request, job = await _lock_for_transition(db, request_id)
    if request.artisan_id != artisan_id:
        raise ForbiddenError("Only the invited artisan can accept this request")
    _assert_transition(request.status, RequestStatus.ACCEPTED)
    job = _assert_linked(job, request)

    now = datetime.now(UTC)
    request.status = RequestStatus.ACCEPTED
    request.updated_on = now
    request.updated_by = artisan_id

    job.status = JobStatus.ASSIGNED
    job.artisan_id = artisan_id
    job.updated_on = now
    job.updated_by = artisan_id

    await db.commit()
    await db.refresh(request)
    logger.info("Request %s accepted; job %s assigned to %s", request_id, job.job_id, artisan_id)

    await email.notify(
        f"Your job request for {job.title} has been accepted.",
        await _email_of(db, request.user_id),
        "Job Request Accepted",
    )
    return request


async def decline_request(
    db: AsyncSession,
    request_id: uuid.UUID | None,
    artisan_id: uuid.UUID,
    rejection_reason: str | None = None,
) -> Request:
    """Artisan turns the job down. The job reopens for a new request."""
    if request_id is None:
        raise ParamMissingError()

    request, job = await _lock_for_transition(db, request_id)
    if request.artisan_id != artisan_id:
        raise ForbiddenError("Only the invited artisan can decline this request")
    _assert_transition(request.status, RequestStatus.DECLINED)
    job = _assert_linked(job, request)

    now = datetime.now(UTC)
    request.status = RequestStatus.DECLINED
    request.rejection_reason = rejection_reason
    request.updated_on = now
    request.updated_by = artisan_id
    _reopen(job, artisan_id, now)

    await db.commit()
    await db.refresh(request)
    logger.info("Request %s declined; job %s reopened", request_id, job.job_id)

    reason = f" Reason: {rejection_reason}" if rejection_reason else ""
    await email.notify(
        f"Your job request for {job.title} was declined.{reason}",
        await _email_of(db, request.user_id),
        "Job Request Declined",
    )
    return request


async def cancel_request(
    db: AsyncSession, request_id: uuid.UUID | None, requester_id: uuid.UUID
) -> Request:
    """Requester withdraws an unanswered offer. The job reopens."""
    if request_id is None:
        raise ParamMissingError()

    request, job = await _lock_for_transition(db, request_id)
    if request.user_id != requester_id:
        raise ForbiddenError("Only the requester can cancel this request")
    _assert_transition(request.status, RequestStatus.CANCELED)
    job = _assert_linked(job, request)

    now = datetime.now(UTC)
    request.status = RequestStatus.CANCELED
    request.updated_on = now
    request.updated_by = requester_id
    _reopen(job, requester_id, now)

    await db.commit()
    await db.refresh(request)
    logger.info("Request %s canceled; job %s reopened", request_id, job.job_id)

    await email.notify(
        f"Your job request for {job.title} was canceled.",
        await _email_of(db, request.user_id),
        "Job Request Canceled",
    )
    return request


async def timeout_check(
    db: AsyncSession,
    job_id: uuid.UUID | None,
    actor_id: uuid.UUID | None = None,
    now: datetime | None = None,
) -> Request | None:
    """Expire the job's pending request if its deadline has passed.

    Returns the expired request, or None when nothing was due. Safe to call
    repeatedly and from several places at once: only the first caller past
    the deadline sees the job PENDING.
    """
    if job_id is None:
        raise ParamMissingError()
    now = now or datetime.now(UTC)

    job = await load_job(db, job_id, for_update=True)
    if job.status != JobStatus.PENDING or job.duration is None or now <= job.duration:
        # Nothing due; end the transaction to release the row lock
        await db.commit()
        return None
    if job.request_id is None:
        raise FailedDependencyError("Pending job has no active request")

    request = await _get_request(db, job.request_id, for_update=True)
    _assert_transition(request.status, RequestStatus.TIMEOUT)

    request.status = RequestStatus.TIMEOUT
    request.updated_on = now
    request.updated_by = actor_id
    _reopen(job, actor_id, now)

    await db.commit()
    await db.refresh(request)
    logger.info("Request %s timed out; job %s reopened", request.request_id, job_id)

    await email.notify(
        f"Your job request for {job.title} expired without a response.",
        await _email_of(db, request.user_id),
        "Job Request Timed Out",
    )
    return request


async def pending_deadlines(db: AsyncSession) -> list[tuple[uuid.UUID, datetime]]:
    """All jobs currently awaiting an artisan's answer, with their deadlines."""
    result = await db.execute(
        select(Job.job_id, Job.duration).where(
            Job.status == JobStatus.PENDING, Job.duration.is_not(None)
        )
    )
    return [(row.job_id, row.duration) for row in result]

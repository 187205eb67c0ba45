"""Job posting endpoints."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.auth.middleware import AuthenticatedPrincipal, require_principal
from marketplace.auth.rate_limit import check_rate_limit
from marketplace.database import get_db
from marketplace.errors import ForbiddenError
from marketplace.models.principal import PrincipalRole
from marketplace.schemas.envelope import Envelope, single_response
from marketplace.schemas.job import JobCreate, JobResponse, JobUpdate
from marketplace.services import job as job_service

router = APIRouter(prefix="/jobs", tags=["jobs"], dependencies=[Depends(check_rate_limit)])


@router.post(
    "",
    response_model=Envelope[JobResponse],
    response_model_exclude_none=True,
    status_code=201,
)
async def create_job(
    data: JobCreate,
    auth: AuthenticatedPrincipal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
) -> Envelope[JobResponse]:
    """Client posts a job."""
    if auth.role != PrincipalRole.USER:
        raise ForbiddenError("Only clients can post jobs")
    job = await job_service.create_job(db, auth.principal_id, data)
    return single_response(JobResponse.model_validate(job), "Job created.")


@router.get("/{job_id}", response_model=Envelope[JobResponse], response_model_exclude_none=True)
async def get_job(
    job_id: uuid.UUID,
    auth: AuthenticatedPrincipal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
) -> Envelope[JobResponse]:
    job = await job_service.get_job(db, job_id)
    return single_response(JobResponse.model_validate(job))


@router.put("/{job_id}", response_model=Envelope[JobResponse], response_model_exclude_none=True)
async def update_job(
    job_id: uuid.UUID,
    data: JobUpdate,
    auth: AuthenticatedPrincipal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
) -> Envelope[JobResponse]:
    """Requester edits a job that has no outstanding request."""
    job = await job_service.update_job(db, job_id, auth.principal_id, data)
    return single_response(JobResponse.model_validate(job), "Job updated.")


@router.put(
    "/{job_id}/complete",
    response_model=Envelope[JobResponse],
    response_model_exclude_none=True,
)
async def complete_job(
    job_id: uuid.UUID,
    auth: AuthenticatedPrincipal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
) -> Envelope[JobResponse]:
    job = await job_service.complete_job(db, job_id, auth.principal_id)
    return single_response(JobResponse.model_validate(job), "Job completed.")

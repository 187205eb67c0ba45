"""Tests for job posting endpoints."""

import uuid
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models.job import JobStatus
from marketplace.models.principal import UserType
from tests.conftest import auth_headers, make_admin, make_job, make_user


def _job_payload(**overrides: object) -> dict:
    data = {
        "title": f"Paint the fence {uuid.uuid4().hex[:6]}",
        "description": "About 30 metres of wooden fence",
        "budget": "250.00",
    }
    data.update(overrides)
    return data


@pytest.mark.asyncio
async def test_create_job(client: AsyncClient, db_session: AsyncSession) -> None:
    requester = await make_user(db_session)
    resp = await client.post("/jobs", json=_job_payload(), headers=auth_headers(requester))

    assert resp.status_code == 201
    result = resp.json()["result"]
    assert result["status"] == "NEW"
    assert result["user_id"] == str(requester.user_id)
    assert "artisan_id" not in result


@pytest.mark.asyncio
async def test_create_job_with_category(client: AsyncClient, db_session: AsyncSession) -> None:
    admin = await make_admin(db_session)
    resp = await client.post(
        "/categories", json={"name": f"Plumbing {uuid.uuid4().hex[:6]}"}, headers=auth_headers(admin)
    )
    category_id = resp.json()["result"]["category_id"]

    requester = await make_user(db_session)
    resp = await client.post(
        "/jobs", json=_job_payload(category_id=category_id), headers=auth_headers(requester)
    )
    assert resp.status_code == 201
    assert resp.json()["result"]["category_id"] == category_id


@pytest.mark.asyncio
async def test_create_job_unknown_category(client: AsyncClient, db_session: AsyncSession) -> None:
    requester = await make_user(db_session)
    resp = await client.post(
        "/jobs", json=_job_payload(category_id=str(uuid.uuid4())), headers=auth_headers(requester)
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_create_job_duplicate_title(client: AsyncClient, db_session: AsyncSession) -> None:
    requester = await make_user(db_session)
    payload = _job_payload()
    assert (await client.post("/jobs", json=payload, headers=auth_headers(requester))).status_code == 201
    resp = await client.post("/jobs", json=payload, headers=auth_headers(requester))
    assert resp.status_code == 409
    assert resp.json()["message"] == "Record already exist."


@pytest.mark.asyncio
async def test_artisan_cannot_post_job(client: AsyncClient, db_session: AsyncSession) -> None:
    artisan = await make_user(db_session, UserType.ARTISAN)
    resp = await client.post("/jobs", json=_job_payload(), headers=auth_headers(artisan))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_blank_title_rejected(client: AsyncClient, db_session: AsyncSession) -> None:
    requester = await make_user(db_session)
    resp = await client.post("/jobs", json=_job_payload(title="   "), headers=auth_headers(requester))
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_get_job_not_found(client: AsyncClient, db_session: AsyncSession) -> None:
    viewer = await make_user(db_session)
    resp = await client.get(f"/jobs/{uuid.uuid4()}", headers=auth_headers(viewer))
    assert resp.status_code == 404
    assert resp.json()["hasErrors"] is True


@pytest.mark.asyncio
async def test_update_job(client: AsyncClient, db_session: AsyncSession) -> None:
    requester = await make_user(db_session)
    job = await make_job(db_session, requester)

    resp = await client.put(
        f"/jobs/{job.job_id}", json={"budget": "99.50"}, headers=auth_headers(requester)
    )
    assert resp.status_code == 200
    assert resp.json()["result"]["budget"] == "99.50"
    assert resp.json()["result"]["updated_by"] == str(requester.user_id)


@pytest.mark.asyncio
async def test_update_job_by_stranger_forbidden(client: AsyncClient, db_session: AsyncSession) -> None:
    requester = await make_user(db_session)
    stranger = await make_user(db_session)
    job = await make_job(db_session, requester)
    resp = await client.put(
        f"/jobs/{job.job_id}", json={"budget": "10.00"}, headers=auth_headers(stranger)
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_update_pending_job_conflict(client: AsyncClient, db_session: AsyncSession) -> None:
    requester = await make_user(db_session)
    job = await make_job(db_session, requester, JobStatus.PENDING)
    resp = await client.put(
        f"/jobs/{job.job_id}", json={"budget": "10.00"}, headers=auth_headers(requester)
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_update_job_empty_body(client: AsyncClient, db_session: AsyncSession) -> None:
    requester = await make_user(db_session)
    job = await make_job(db_session, requester)
    resp = await client.put(f"/jobs/{job.job_id}", json={}, headers=auth_headers(requester))
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_complete_assigned_job(client: AsyncClient, db_session: AsyncSession) -> None:
    requester = await make_user(db_session)
    artisan = await make_user(db_session, UserType.ARTISAN)
    job = await make_job(db_session, requester, JobStatus.ASSIGNED, artisan_id=artisan.user_id)

    resp = await client.put(f"/jobs/{job.job_id}/complete", headers=auth_headers(requester))
    assert resp.status_code == 200
    assert resp.json()["result"]["status"] == "COMPLETED"


@pytest.mark.asyncio
async def test_complete_new_job_conflict(client: AsyncClient, db_session: AsyncSession) -> None:
    requester = await make_user(db_session)
    job = await make_job(db_session, requester)
    resp = await client.put(f"/jobs/{job.job_id}/complete", headers=auth_headers(requester))
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_duplicate_title_caught_at_insert(client: AsyncClient, db_session: AsyncSession) -> None:
    """Two posts that both pass the title lookup still resolve to one 409."""
    requester = await make_user(db_session)
    payload = _job_payload()
    assert (await client.post("/jobs", json=payload, headers=auth_headers(requester))).status_code == 201

    with patch("marketplace.services.job._assert_unique_title", AsyncMock(return_value=None)):
        resp = await client.post("/jobs", json=payload, headers=auth_headers(requester))

    assert resp.status_code == 409
    assert resp.json()["message"] == "Record already exist."

"""Tests for identity endpoints: login portals, refresh, password recovery."""

import re
from datetime import UTC, datetime, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.auth.tokens import ACCESS_TOKEN, decode_token, issue_recovery_token
from marketplace.models.principal import PrincipalRole, UserType
from tests.conftest import DEFAULT_PASSWORD, make_admin, make_user, refresh_headers


async def _login(client: AsyncClient, path: str, address: str, password: str = DEFAULT_PASSWORD):
    return await client.post(path, json={"email": address, "password": password})


@pytest.mark.asyncio
async def test_user_login_success(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await make_user(db_session)
    resp = await _login(client, "/identity/token", user.email)

    assert resp.status_code == 200
    body = resp.json()
    assert decode_token(body["token"], ACCESS_TOKEN).principal_id == user.user_id
    assert body["refresh_token"]
    assert body["user"]["id"] == str(user.user_id)
    assert body["user"]["role"] == "user"
    assert "password_hash" not in body["user"]
    assert "permissions" not in body


@pytest.mark.asyncio
async def test_login_email_case_insensitive(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await make_user(db_session)
    resp = await _login(client, "/identity/token", user.email.upper())
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_user_login_wrong_password(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await make_user(db_session)
    resp = await _login(client, "/identity/token", user.email, "wrong-password")

    assert resp.status_code == 401
    body = resp.json()
    assert body == {
        "hasErrors": True,
        "hasResults": False,
        "successful": False,
        "message": "Invalid credentials.",
    }
    assert user.login_attempts == 1


@pytest.mark.asyncio
async def test_unknown_email_looks_like_wrong_password(client: AsyncClient) -> None:
    resp = await _login(client, "/identity/token", "nobody@example.com")
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid credentials."


@pytest.mark.asyncio
async def test_locked_account_returns_423(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await make_user(
        db_session,
        login_attempts=6,
        is_locked=True,
        lock_until=datetime.now(UTC) + timedelta(minutes=15),
    )
    resp = await _login(client, "/identity/token", user.email)
    assert resp.status_code == 423
    assert resp.json()["message"] == "Maximum login attempts exceeded. Account temporarily locked."


@pytest.mark.asyncio
async def test_lockout_through_http(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await make_user(db_session)
    codes = [
        (await _login(client, "/identity/token", user.email, "wrong-password")).status_code
        for _ in range(6)
    ]
    assert codes == [401, 401, 401, 401, 401, 423]

    # Correct password is still refused while the lock is active
    resp = await _login(client, "/identity/token", user.email)
    assert resp.status_code == 423


@pytest.mark.asyncio
async def test_artisan_portal(client: AsyncClient, db_session: AsyncSession) -> None:
    artisan = await make_user(db_session, UserType.ARTISAN)

    resp = await _login(client, "/identity/artisan/token", artisan.email)
    assert resp.status_code == 200
    assert resp.json()["user"]["role"] == "artisan"

    # Artisans cannot use the client portal
    resp = await _login(client, "/identity/token", artisan.email)
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_suspended_artisan_rejected(client: AsyncClient, db_session: AsyncSession) -> None:
    artisan = await make_user(db_session, UserType.ARTISAN, is_active=False)
    resp = await _login(client, "/identity/artisan/token", artisan.email)
    assert resp.status_code == 403
    assert resp.json()["message"] == "Account temporarily suspended."


@pytest.mark.asyncio
async def test_admin_login_includes_permissions(client: AsyncClient, db_session: AsyncSession) -> None:
    admin = await make_admin(db_session)
    resp = await _login(client, "/identity/admin/token", admin.email)

    assert resp.status_code == 200
    body = resp.json()
    assert body["permissions"] == ["users:write", "categories:write"]
    assert body["user"]["role"] == "admin"
    assert decode_token(body["token"], ACCESS_TOKEN).role == PrincipalRole.ADMIN


@pytest.mark.asyncio
async def test_refresh_issues_new_pair(client: AsyncClient, db_session: AsyncSession) -> None:
    user = await make_user(db_session)
    resp = await client.post("/identity/refresh", headers=refresh_headers(user))

    assert resp.status_code == 200
    claims = decode_token(resp.json()["token"], ACCESS_TOKEN)
    assert claims.principal_id == user.user_id


@pytest.mark.asyncio
async def test_refresh_rejects_access_token(client: AsyncClient, db_session: AsyncSession) -> None:
    from tests.conftest import auth_headers

    user = await make_user(db_session)
    resp = await client.post("/identity/refresh", headers=auth_headers(user))
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid token!"


@pytest.mark.asyncio
async def test_forgot_password_sends_link(
    client: AsyncClient, db_session: AsyncSession, outbox
) -> None:
    user = await make_user(db_session)
    resp = await client.post("/identity/forgot-password", json={"email": user.email})

    assert resp.status_code == 200
    assert resp.json()["hasResults"] is False
    assert outbox.subjects_for(user.email) == ["Password Recovery"]
    assert "reset-password?token=" in outbox.sent[0]["body"]


@pytest.mark.asyncio
async def test_forgot_password_unknown_email(client: AsyncClient, outbox) -> None:
    resp = await client.post("/identity/forgot-password", json={"email": "ghost@example.com"})
    assert resp.status_code == 200
    assert outbox.sent == []


@pytest.mark.asyncio
async def test_admin_forgot_password(client: AsyncClient, db_session: AsyncSession, outbox) -> None:
    admin = await make_admin(db_session)
    resp = await client.post("/identity/admin/forgot-password", json={"email": admin.email})
    assert resp.status_code == 200
    assert outbox.subjects_for(admin.email) == ["Password Recovery"]


@pytest.mark.asyncio
async def test_reset_password_flow(client: AsyncClient, db_session: AsyncSession, outbox) -> None:
    user = await make_user(
        db_session,
        login_attempts=6,
        is_locked=True,
        lock_until=datetime.now(UTC) + timedelta(minutes=15),
    )
    await client.post("/identity/forgot-password", json={"email": user.email})
    token = re.search(r"token=(\S+)", outbox.sent[0]["body"]).group(1)

    resp = await client.post(
        "/identity/reset-password", json={"token": token, "password": "a-brand-new-secret"}
    )
    assert resp.status_code == 200
    assert user.is_locked is False
    assert user.login_attempts == 0

    assert (await _login(client, "/identity/token", user.email)).status_code == 401
    resp = await _login(client, "/identity/token", user.email, "a-brand-new-secret")
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_reset_password_rejects_access_token(
    client: AsyncClient, db_session: AsyncSession
) -> None:
    user = await make_user(db_session)
    from marketplace.auth.tokens import issue_token_pair

    access = issue_token_pair(user.user_id, user.role).token
    resp = await client.post(
        "/identity/reset-password", json={"token": access, "password": "a-brand-new-secret"}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_recovery_token_is_single_purpose(db_session: AsyncSession) -> None:
    from marketplace.errors import InvalidCredentialsError

    user = await make_user(db_session)
    token = issue_recovery_token(user.user_id, user.role)
    with pytest.raises(InvalidCredentialsError):
        decode_token(token, ACCESS_TOKEN)


@pytest.mark.asyncio
async def test_login_missing_password(client: AsyncClient) -> None:
    resp = await client.post("/identity/token", json={"email": "someone@example.com"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "One or more of the required parameters was missing."

"""Test configuration and fixtures.

Supports parallel execution via pytest-xdist (pytest -n auto).
Each worker gets its own Postgres schema. Within a worker, tables are created
once per session and each test runs inside a rolled-back transaction (fast).
"""

import asyncio
import uuid
from collections.abc import AsyncGenerator
from unittest.mock import patch

import pytest
import pytest_asyncio
import redis.asyncio as aioredis
import sqlalchemy
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from marketplace.auth.tokens import issue_token_pair
from marketplace.config import settings
from marketplace.database import Base, get_db
from marketplace.main import app
from marketplace.models.job import Job, JobStatus
from marketplace.models.principal import Admin, User, UserType
from marketplace.redis import get_redis
from marketplace.utils.crypto import hash_password

DEFAULT_PASSWORD = "correct-horse-battery"

# argon2id is deliberately slow; hash the shared test password once
_DEFAULT_HASH = hash_password(DEFAULT_PASSWORD)


# ---------------------------------------------------------------------------
# Per-worker database isolation (for pytest-xdist)
# ---------------------------------------------------------------------------

def _worker_schema(worker_id: str) -> str:
    """Each xdist worker gets its own Postgres schema for isolation."""
    if worker_id == "master":
        return "public"
    return f"test_{worker_id}"


def _worker_redis_db(worker_id: str) -> int:
    if worker_id == "master":
        return 0
    return int(worker_id.replace("gw", "")) + 1


@pytest.fixture(scope="session")
def worker_id(request: pytest.FixtureRequest) -> str:
    if hasattr(request.config, "workerinput"):
        return request.config.workerinput["workerid"]
    return "master"


def _drop_enum_types_sql(schema: str) -> str:
    prefix = "" if schema == "public" else f"{schema}."
    return (
        f"DO $$ DECLARE r RECORD; "
        f"BEGIN FOR r IN (SELECT typname FROM pg_type t JOIN pg_namespace n ON t.typnamespace = n.oid "
        f"WHERE n.nspname = '{schema}' AND t.typtype = 'e') "
        f"LOOP EXECUTE 'DROP TYPE IF EXISTS {prefix}' || quote_ident(r.typname) || ' CASCADE'; END LOOP; END $$;"
    )


async def _setup_schema(schema: str) -> None:
    """Create per-worker schema and tables."""
    engine_auto = create_async_engine(
        settings.test_database_url, isolation_level="AUTOCOMMIT"
    )
    async with engine_auto.connect() as conn:
        if schema != "public":
            await conn.execute(text(f'DROP SCHEMA IF EXISTS "{schema}" CASCADE'))
            await conn.execute(text(f'CREATE SCHEMA "{schema}"'))
    await engine_auto.dispose()

    engine = create_async_engine(
        settings.test_database_url,
        connect_args={"server_settings": {"search_path": schema}},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.execute(text(_drop_enum_types_sql(schema)))
        await conn.execute(text("DROP TABLE IF EXISTS alembic_version"))
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()


async def _teardown_schema(schema: str) -> None:
    """Drop per-worker schema or clean public schema."""
    if schema != "public":
        engine = create_async_engine(
            settings.test_database_url, isolation_level="AUTOCOMMIT"
        )
        async with engine.connect() as conn:
            await conn.execute(text(f'DROP SCHEMA IF EXISTS "{schema}" CASCADE'))
        await engine.dispose()
        return

    engine = create_async_engine(settings.test_database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.execute(text(_drop_enum_types_sql(schema)))
    await engine.dispose()


@pytest.fixture(scope="session")
def _worker_db_setup(worker_id: str) -> tuple[str, str]:
    """Create per-worker schema and tables once per session (sync wrapper).

    Returns (async_db_url, schema_name).
    """
    schema = _worker_schema(worker_id)
    asyncio.run(_setup_schema(schema))

    yield settings.test_database_url, schema

    asyncio.run(_teardown_schema(schema))


# ---------------------------------------------------------------------------
# Per-test fixtures: transaction rollback isolation
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolate_settings() -> None:
    """Snapshot settings before each test and restore after to prevent mutation bleed."""
    original = settings.model_dump()
    object.__setattr__(settings, "email_backend", "log")
    yield  # type: ignore[misc]
    for key, value in original.items():
        object.__setattr__(settings, key, value)


@pytest_asyncio.fixture
async def _worker_engine(_worker_db_setup: tuple[str, str]) -> AsyncGenerator[AsyncEngine, None]:
    """Async engine for this worker's test DB (created per-test, cheap)."""
    url, schema = _worker_db_setup
    engine = create_async_engine(
        url,
        connect_args={"server_settings": {"search_path": schema}},
    )
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def _worker_redis(worker_id: str) -> AsyncGenerator[aioredis.Redis, None]:
    """Per-worker Redis connection using separate DB numbers."""
    base_url = settings.redis_url.rsplit("/", 1)[0]
    db_num = _worker_redis_db(worker_id)
    redis_client = aioredis.from_url(f"{base_url}/{db_num}")
    await redis_client.flushdb()
    yield redis_client
    await redis_client.flushdb()
    await redis_client.aclose()


@pytest_asyncio.fixture
async def db_session(
    _worker_engine: AsyncEngine,
) -> AsyncGenerator[AsyncSession, None]:
    """Per-test session wrapped in a transaction that rolls back after the test.

    Tests that call session.commit() will commit the inner SAVEPOINT, not the
    outer transaction, so data is still rolled back at the end.
    """
    async with _worker_engine.connect() as conn:
        txn = await conn.begin()
        await conn.begin_nested()

        session = AsyncSession(bind=conn, expire_on_commit=False)

        @sqlalchemy.event.listens_for(session.sync_session, "after_transaction_end")
        def reopen_nested(session_sync, transaction):  # type: ignore[no-untyped-def]
            if conn.closed:
                return
            if not conn.in_nested_transaction():
                conn.sync_connection.begin_nested()  # type: ignore[union-attr]

        yield session

        await session.close()
        await txn.rollback()


@pytest_asyncio.fixture
async def test_db(_worker_engine: AsyncEngine):
    """Session factory backed by the per-worker engine, with real commits.

    Used where code under test opens its own sessions. Tables are emptied
    afterwards.
    """
    factory = async_sessionmaker(_worker_engine, class_=AsyncSession, expire_on_commit=False)
    yield factory

    async with _worker_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(table.delete())


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    _worker_redis: aioredis.Redis,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP test client with overridden DB and Redis dependencies."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    async def override_get_redis() -> AsyncGenerator[aioredis.Redis, None]:
        yield _worker_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis

    async for key in _worker_redis.scan_iter("ratelimit:*"):
        await _worker_redis.delete(key)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


class RecordingSender:
    """Email sender that keeps messages in memory."""

    def __init__(self) -> None:
        self.sent: list[dict[str, str]] = []

    async def send(self, to: str, subject: str, body: str) -> None:
        self.sent.append({"to": to, "subject": subject, "body": body})

    def subjects_for(self, address: str) -> list[str]:
        return [m["subject"] for m in self.sent if m["to"] == address]


@pytest.fixture
def outbox() -> RecordingSender:
    sender = RecordingSender()
    with patch("marketplace.services.email.get_email_sender", return_value=sender):
        yield sender  # type: ignore[misc]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _unique_email(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}@example.com"


async def make_user(
    db: AsyncSession,
    user_type: UserType = UserType.CLIENT,
    email: str | None = None,
    **fields: object,
) -> User:
    """Insert and commit a user whose password is DEFAULT_PASSWORD."""
    user = User(
        user_id=uuid.uuid4(),
        email=email or _unique_email(user_type.value),
        firstname="Test",
        lastname=user_type.value.title(),
        user_type=user_type,
        password_hash=_DEFAULT_HASH,
        **fields,
    )
    db.add(user)
    await db.commit()
    return user


async def make_admin(db: AsyncSession, email: str | None = None, **fields: object) -> Admin:
    admin = Admin(
        admin_id=uuid.uuid4(),
        email=email or _unique_email("admin"),
        firstname="Test",
        lastname="Admin",
        password_hash=_DEFAULT_HASH,
        permissions=["users:write", "categories:write"],
        **fields,
    )
    db.add(admin)
    await db.commit()
    return admin


async def make_job(
    db: AsyncSession,
    requester: User,
    status: JobStatus = JobStatus.NEW,
    **fields: object,
) -> Job:
    job = Job(
        job_id=uuid.uuid4(),
        title=f"Fix the sink {uuid.uuid4().hex[:8]}",
        description="Kitchen sink drains slowly",
        user_id=requester.user_id,
        status=status,
        **fields,
    )
    db.add(job)
    await db.commit()
    return job


def auth_headers(principal: User | Admin) -> dict[str, str]:
    """Bearer header carrying a freshly issued access token."""
    tokens = issue_token_pair(principal.principal_id, principal.role)
    return {"Authorization": f"Bearer {tokens.token}"}


def refresh_headers(principal: User | Admin) -> dict[str, str]:
    tokens = issue_token_pair(principal.principal_id, principal.role)
    return {"Authorization": f"Bearer {tokens.refresh_token}"}

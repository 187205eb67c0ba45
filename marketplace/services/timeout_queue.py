"""Request timeout queue using a Redis sorted set.

When a request is sent, the job_id is ZADDed with score = the request's
deadline as a unix timestamp. A single async consumer peeks at the earliest
entry, sleeps until it is due, then expires the job's pending request.

The queue is an accelerator, not the source of truth: the job row holds the
deadline, and ``timeout_check`` re-verifies it under a row lock before
changing anything. Entries that outlive their request are harmless no-ops.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.config import settings

logger = logging.getLogger(__name__)

TIMEOUT_KEY = "request:timeouts"


async def enqueue_timeout(
    redis: aioredis.Redis,
    job_id: uuid.UUID,
    deadline_timestamp: float,
) -> None:
    """Schedule a pending job for timeout enforcement."""
    await redis.zadd(TIMEOUT_KEY, {str(job_id): deadline_timestamp})
    logger.info("Enqueued timeout for job %s at %s", job_id, deadline_timestamp)


async def cancel_timeout(redis: aioredis.Redis, job_id: uuid.UUID) -> None:
    """Drop a job from the queue once its request has been answered."""
    await redis.zrem(TIMEOUT_KEY, str(job_id))


async def run_timeout_consumer() -> None:
    """Expire requests as their deadlines arrive.

    Sleeps until the earliest deadline, capped so newly enqueued earlier
    deadlines are picked up promptly.
    """
    from marketplace.redis import redis_client

    redis = redis_client()
    idle = settings.timeout_consumer_idle_seconds
    max_sleep = settings.timeout_consumer_max_sleep_seconds

    while True:
        try:
            entries = await redis.zrangebyscore(
                TIMEOUT_KEY, "-inf", "+inf", start=0, num=1, withscores=True
            )

            if not entries:
                await asyncio.sleep(idle)
                continue

            job_id_bytes, deadline_ts = entries[0]
            now = time.time()

            if deadline_ts >= now:
                await asyncio.sleep(min(deadline_ts - now + 0.001, max_sleep))
                continue

            removed = await redis.zrem(TIMEOUT_KEY, job_id_bytes)
            if not removed:
                # Another consumer got it
                continue

            await expire_overdue_job(uuid.UUID(job_id_bytes.decode()))

        except asyncio.CancelledError:
            logger.info("Timeout consumer shutting down")
            break
        except Exception:
            logger.exception("Timeout consumer error, retrying in 5s")
            await asyncio.sleep(5)

    await redis.aclose()


async def expire_overdue_job(
    job_id: uuid.UUID,
    session_factory: Callable[[], AsyncSession] | None = None,
) -> bool:
    """Time out the job's pending request if it is due. Returns True if it expired."""
    from marketplace.errors import MarketplaceError
    from marketplace.services.request import timeout_check

    if session_factory is None:
        from marketplace.database import async_session_factory as session_factory

    try:
        async with session_factory() as db:
            expired = await timeout_check(db, job_id)
    except MarketplaceError as exc:
        logger.warning("Timeout skipped for job %s: %s", job_id, exc.detail)
        return False
    except Exception:
        logger.exception("Failed to enforce timeout for job %s", job_id)
        return False

    if expired is None:
        logger.info("Job %s has no due request, skipping timeout enforcement", job_id)
        return False
    return True


async def recover_timeouts(
    session_factory: Callable[[], AsyncSession] | None = None,
    redis_client: aioredis.Redis | None = None,
) -> tuple[int, int]:
    """Startup sweep over PENDING jobs.

    Overdue requests are expired immediately, the rest are re-enqueued.
    ZADD is idempotent so this is safe to run on every start.
    Returns (expired, enqueued).
    """
    from marketplace.services.request import pending_deadlines

    if session_factory is None:
        from marketplace.database import async_session_factory as session_factory

    expired = enqueued = 0
    owns_client = redis_client is None
    if owns_client:
        from marketplace.redis import redis_client as make_client
        redis_client = make_client()

    try:
        async with session_factory() as db:
            pending = await pending_deadlines(db)

        if not pending:
            logger.info("Timeout recovery: no pending requests")
            return 0, 0

        now = datetime.now(UTC)
        for job_id, deadline in pending:
            if deadline < now:
                if await expire_overdue_job(job_id, session_factory=session_factory):
                    expired += 1
            else:
                await enqueue_timeout(redis_client, job_id, deadline.timestamp())
                enqueued += 1

        logger.info(
            "Timeout recovery: %d requests expired, %d re-enqueued", expired, enqueued
        )
    except Exception:
        logger.exception("Timeout recovery failed")
    finally:
        if owns_client:
            await redis_client.aclose()

    return expired, enqueued

from collections.abc import AsyncGenerator

import redis.asyncio as aioredis

from marketplace.config import settings

redis_pool = aioredis.ConnectionPool.from_url(settings.redis_url)


def redis_client() -> aioredis.Redis:
    """Client on the shared pool for code running outside a request (background tasks)."""
    return aioredis.Redis(connection_pool=redis_pool)


async def get_redis() -> AsyncGenerator[aioredis.Redis, None]:
    client = redis_client()
    try:
        yield client
    finally:
        await client.aclose()

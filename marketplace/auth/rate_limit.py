"""Token bucket rate limiter backed by Redis."""

import time

import redis.asyncio as aioredis
from fastapi import Depends, HTTPException, Request, Response

from marketplace.auth.middleware import extract_bearer_token
from marketplace.auth.tokens import ACCESS_TOKEN, decode_token
from marketplace.config import settings
from marketplace.redis import get_redis

# Lua script for atomic token bucket check-and-consume
_TOKEN_BUCKET_SCRIPT = """
local key = KEYS[1]
local capacity = tonumber(ARGV[1])
local refill_rate = tonumber(ARGV[2])
local now = tonumber(ARGV[3])

local bucket = redis.call('HMGET', key, 'tokens', 'last_refill')
local tokens = tonumber(bucket[1])
local last_refill = tonumber(bucket[2])

if tokens == nil then
    tokens = capacity
    last_refill = now
end

local elapsed = now - last_refill
local new_tokens = math.min(capacity, tokens + elapsed * (refill_rate / 60.0))

if new_tokens >= 1 then
    new_tokens = new_tokens - 1
    redis.call('HMSET', key, 'tokens', new_tokens, 'last_refill', now)
    redis.call('EXPIRE', key, 120)
    return {1, math.floor(new_tokens), 0}
else
    local retry_after = 60
    if refill_rate > 0 then
        retry_after = math.ceil((1 - new_tokens) * 60 / refill_rate)
    end
    redis.call('HMSET', key, 'tokens', new_tokens, 'last_refill', now)
    redis.call('EXPIRE', key, 120)
    return {0, 0, retry_after}
end
"""


def _get_rate_config(method: str, path: str) -> tuple[int, int, str]:
    """Return (capacity, refill_per_min, category) based on endpoint."""
    # Credential endpoints are keyed per IP and kept tight to slow password guessing
    if method == "POST" and path.startswith("/identity"):
        return (
            settings.rate_limit_login_capacity,
            settings.rate_limit_login_refill_per_min,
            "login",
        )
    if method in ("POST", "PUT", "PATCH", "DELETE"):
        return (
            settings.rate_limit_write_capacity,
            settings.rate_limit_write_refill_per_min,
            "write",
        )
    return (
        settings.rate_limit_read_capacity,
        settings.rate_limit_read_refill_per_min,
        "read",
    )


def _get_client_ip(request: Request) -> str:
    """Extract client IP, respecting X-Forwarded-For for reverse proxies."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # First IP in the chain is the original client
        return forwarded_for.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


def _bucket_key(request: Request, category: str) -> str:
    if category != "login":
        token = extract_bearer_token(request.headers.get("Authorization"))
        if token:
            try:
                claims = decode_token(token, ACCESS_TOKEN)
                return f"ratelimit:{claims.principal_id}:{category}"
            except HTTPException:
                pass  # unauthenticated callers share the per-IP bucket
    return f"ratelimit:ip:{_get_client_ip(request)}:{category}"


async def check_rate_limit(
    request: Request,
    response: Response,
    redis: aioredis.Redis = Depends(get_redis),
) -> None:
    """Rate limit dependency."""
    method = request.method.upper()
    path = request.url.path
    capacity, refill_rate, category = _get_rate_config(method, path)
    bucket_key = _bucket_key(request, category)

    result = await redis.eval(
        _TOKEN_BUCKET_SCRIPT, 1, bucket_key, capacity, refill_rate, time.time()
    )

    allowed, remaining, retry_after = int(result[0]), int(result[1]), int(result[2])

    response.headers["X-RateLimit-Limit"] = str(capacity)
    response.headers["X-RateLimit-Remaining"] = str(remaining)

    if not allowed:
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(retry_after)},
        )

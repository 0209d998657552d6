"""Per-user HTTP throttling backed by Redis fixed-window counters.

This is request-level flood protection for the API as a whole. Push
admission limits (pushes per target / per sender) are domain rules and live
in services/eligibility.py, enforced transactionally by the ledger.

Key format: tf:rl:{user_id}:{bucket_type}:{window_start}
Bucket types: "read" or "write"
"""
import time
from typing import Annotated

import redis.asyncio as aioredis
from fastapi import Depends, HTTPException

from trustflow.config import Settings, settings
from trustflow.dependencies import CurrentUser, RedisClient
from trustflow.models.user import User

WINDOW_SECONDS = 60

# KEYS[1] = counter key for the current window
# ARGV[1] = window length in seconds
#
# Returns {count, ttl}. INCR and the first EXPIRE run atomically on the server.
FIXED_WINDOW_LUA = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('EXPIRE', KEYS[1], tonumber(ARGV[1]))
end
local ttl = redis.call('TTL', KEYS[1])
return {count, ttl}
"""


async def check_rate_limit(
    user: User,
    redis_client: aioredis.Redis,
    bucket_type: str,
    app_settings: Settings,
    now: float | None = None,
) -> None:
    """Count this request against the user's current window.

    Raises HTTP 429 with Retry-After (seconds left in the window) once the
    bucket's per-minute allowance is used up.
    """
    if bucket_type == "read":
        limit = app_settings.rate_limit_read_per_minute
    else:
        limit = app_settings.rate_limit_write_per_minute

    window_start = int((now if now is not None else time.time()) // WINDOW_SECONDS)
    key = f"tf:rl:{user.id}:{bucket_type}:{window_start}"

    count, ttl = await redis_client.eval(FIXED_WINDOW_LUA, 1, key, WINDOW_SECONDS)

    if int(count) > limit:
        retry_after = int(ttl) if int(ttl) > 0 else WINDOW_SECONDS
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(retry_after)},
        )


def rate_limit(bucket_type: str):
    """FastAPI dependency factory for a throttling bucket."""

    async def _check(
        user: CurrentUser,
        redis_client: RedisClient,
    ) -> None:
        await check_rate_limit(user, redis_client, bucket_type, settings)

    return _check


# Annotated type aliases: inject into endpoint signatures for clean DI
ReadRateLimit = Annotated[None, Depends(rate_limit("read"))]
WriteRateLimit = Annotated[None, Depends(rate_limit("write"))]

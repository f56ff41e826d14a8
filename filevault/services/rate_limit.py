import logging
import time
import uuid
from dataclasses import dataclass
from typing import Callable

import redis.asyncio as redis

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after: int = 0


class RateLimiter:
    """Sliding-window request counter shared through Redis.

    Each client gets a sorted set of request timestamps under
    ``<prefix>:<identifier>``; keys expire with the window, so idle clients
    leave nothing behind. All workers pointing at the same Redis share one
    budget per client.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        max_requests: int = 100,
        window_seconds: int = 900,
        prefix: str = "rate_limit",
        clock: Callable[[], float] = time.time,
    ):
        self.redis = redis_client
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.prefix = prefix
        self.clock = clock

    def key(self, identifier: str) -> str:
        return f"{self.prefix}:{identifier}"

    async def hit(self, identifier: str) -> RateLimitResult:
        key = self.key(identifier)
        now = self.clock()
        window_start = now - self.window_seconds
        member = f"{now}:{uuid.uuid4().hex[:8]}"

        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(key, 0, window_start)
                pipe.zadd(key, {member: now})
                pipe.zcard(key)
                pipe.expire(key, self.window_seconds)
                _, _, count, _ = await pipe.execute()

            if count <= self.max_requests:
                return RateLimitResult(allowed=True, remaining=self.max_requests - count)

            # Over budget: a rejected request does not consume a slot
            await self.redis.zrem(key, member)
            oldest = await self.redis.zrange(key, 0, 0, withscores=True)
        except redis.RedisError as e:
            # If Redis fails, don't rate limit
            logger.warning("Rate limiter unavailable, letting request through: %s", e)
            return RateLimitResult(allowed=True, remaining=self.max_requests)

        retry_after = self.window_seconds
        if oldest:
            retry_after = max(1, int(oldest[0][1] - window_start) + 1)
        return RateLimitResult(allowed=False, remaining=0, retry_after=retry_after)

import asyncio
import math
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from redis.asyncio import Redis

# Trim, count, conditional add and expire run as one server-side step, so
# concurrent callers cannot all observe a count under the limit.
SLIDING_WINDOW_SCRIPT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
local member = ARGV[4]

redis.call('ZREMRANGEBYSCORE', key, '-inf', now - window)
local count = redis.call('ZCARD', key)
local allowed = 0
if count < limit then
    redis.call('ZADD', key, now, member)
    count = count + 1
    allowed = 1
end
redis.call('EXPIRE', key, math.ceil(window))

local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
local oldest_ts = ARGV[1]
if oldest[2] then
    oldest_ts = oldest[2]
end
return {allowed, count, oldest_ts}
"""


@dataclass(frozen=True)
class RateLimitResult:
    success: bool
    limit: int
    remaining: int
    reset: float
    retry_after: int = 0


class SlidingWindowRateLimiter:
    """
    Counts hits per key over a continuously moving window.

    With a Redis client every hit is a member of a sorted set scored by its
    timestamp; without one, timestamps are kept in process memory (tests and
    single-process deployments).
    """

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        redis: Optional[Redis] = None,
        prefix: str = "rl",
        clock: Callable[[], float] = time.time,
    ):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.max_requests = limit
        self.window_seconds = window_seconds
        self.redis = redis
        self.prefix = prefix
        self.clock = clock
        self._requests: Dict[str, List[float]] = {}
        self._lock = asyncio.Lock()
        self._last_sweep = clock()
        self._script = redis.register_script(SLIDING_WINDOW_SCRIPT) if redis is not None else None

    async def limit(self, key: str) -> RateLimitResult:
        if self.redis is None:
            return await self._limit_in_memory(key)
        return await self._limit_redis(key)

    async def _limit_in_memory(self, key: str) -> RateLimitResult:
        now = self.clock()
        cutoff = now - self.window_seconds
        async with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(cutoff)
                self._last_sweep = now

            # Remove old timestamps outside window
            timestamps = [ts for ts in self._requests.get(key, []) if ts > cutoff]
            if len(timestamps) >= self.max_requests:
                self._requests[key] = timestamps
                reset = timestamps[0] + self.window_seconds
                return RateLimitResult(False, self.max_requests, 0, reset, math.ceil(reset - now))
            timestamps.append(now)
            self._requests[key] = timestamps
            return RateLimitResult(
                True, self.max_requests, self.max_requests - len(timestamps), timestamps[0] + self.window_seconds
            )

    def _sweep(self, cutoff: float) -> None:
        """Drop keys whose newest hit has left the window."""
        stale = [key for key, timestamps in self._requests.items() if not timestamps or timestamps[-1] <= cutoff]
        for key in stale:
            del self._requests[key]

    async def _limit_redis(self, key: str) -> RateLimitResult:
        now = self.clock()
        redis_key = f"{self.prefix}:{key}"

        allowed, count, oldest = await self._script(
            keys=[redis_key],
            args=[now, self.window_seconds, self.max_requests, f"{now}:{uuid.uuid4().hex}"],
        )

        reset = float(oldest) + self.window_seconds
        if not int(allowed):
            return RateLimitResult(False, self.max_requests, 0, reset, math.ceil(reset - now))
        return RateLimitResult(True, self.max_requests, self.max_requests - int(count), reset)

    async def close(self) -> None:
        if self.redis is not None:
            await self.redis.aclose()

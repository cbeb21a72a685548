"""
Redis Sliding Window Limiter
============================
Sliding-log limiter on Redis sorted sets, shared across processes.
"""

import math
import uuid
from typing import Dict, Optional

import structlog
from redis import asyncio as aioredis

from otpgate.clock import Clock, SystemClock

from .models import DAY_SECONDS, HOUR_SECONDS, RateLimitInfo, RateLimitReason

logger = structlog.get_logger(__name__)


class RedisSlidingWindowLimiter:
    """
    Redis-backed sliding-log rate limiter.

    Same contract as SlidingWindowRateLimiter. Each key is a sorted set of
    dispatch timestamps that Redis expires after 24 hours of inactivity.
    Steps are not wrapped in a transaction, so two concurrent calls for the
    same number can over-admit by one.
    """

    def __init__(
        self,
        redis_client,
        hourly_cap: int = 5,
        daily_cap: int = 20,
        clock: Optional[Clock] = None,
        prefix: str = "otpgate:sms",
        owns_client: bool = False,
    ):
        self.redis = redis_client
        self.hourly_cap = hourly_cap
        self.daily_cap = daily_cap
        self.clock = clock or SystemClock()
        self.prefix = prefix
        self._owns_client = owns_client

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisSlidingWindowLimiter":
        client = aioredis.from_url(url, decode_responses=True)
        return cls(client, owns_client=True, **kwargs)

    def get_key(self, phone_number: str) -> str:
        return f"{self.prefix}:{phone_number}"

    async def check_and_record(self, key: str) -> RateLimitInfo:
        """Check using a sliding log in a sorted set."""
        redis_key = self.get_key(key)
        now = self.clock.timestamp()
        hour_floor = f"({now - HOUR_SECONDS}"

        try:
            await self.redis.zremrangebyscore(redis_key, 0, now - DAY_SECONDS)

            in_hour = await self.redis.zcount(redis_key, hour_floor, "+inf")
            if in_hour >= self.hourly_cap:
                oldest = await self.redis.zrangebyscore(
                    redis_key, hour_floor, "+inf", start=0, num=1, withscores=True
                )
                reset_at = (oldest[0][1] if oldest else now) + HOUR_SECONDS
                return RateLimitInfo(
                    allowed=False,
                    remaining=0,
                    limit=self.hourly_cap,
                    reset_at=int(reset_at),
                    retry_after=max(1, math.ceil(reset_at - now)),
                    reason=RateLimitReason.HOURLY,
                )

            in_day = await self.redis.zcard(redis_key)
            if in_day >= self.daily_cap:
                oldest = await self.redis.zrange(redis_key, 0, 0, withscores=True)
                reset_at = (oldest[0][1] if oldest else now) + DAY_SECONDS
                return RateLimitInfo(
                    allowed=False,
                    remaining=0,
                    limit=self.daily_cap,
                    reset_at=int(reset_at),
                    retry_after=max(1, math.ceil(reset_at - now)),
                    reason=RateLimitReason.DAILY,
                )

            member = f"{now}:{uuid.uuid4().hex[:8]}"
            await self.redis.zadd(redis_key, {member: now})
            await self.redis.expire(redis_key, DAY_SECONDS)
        except Exception as e:
            logger.error("Rate limit check failed", error=str(e))
            # Fail open in case of Redis issues
            return RateLimitInfo(
                allowed=True,
                remaining=self.hourly_cap,
                limit=self.hourly_cap,
                reset_at=int(now) + HOUR_SECONDS,
            )

        return RateLimitInfo(
            allowed=True,
            remaining=min(self.hourly_cap - in_hour - 1, self.daily_cap - in_day - 1),
            limit=self.hourly_cap,
            reset_at=int(now) + HOUR_SECONDS,
        )

    async def prune(self) -> int:
        """Redis expires idle keys on its own; nothing to remove here."""
        return 0

    async def stats(self) -> Dict[str, int]:
        hour_floor = f"({self.clock.timestamp() - HOUR_SECONDS}"
        tracked = 0
        limited = 0
        total = 0
        async for redis_key in self.redis.scan_iter(match=f"{self.prefix}:*"):
            tracked += 1
            total += await self.redis.zcard(redis_key)
            if await self.redis.zcount(redis_key, hour_floor, "+inf") >= self.hourly_cap:
                limited += 1
        return {
            "tracked_numbers": tracked,
            "rate_limited_numbers": limited,
            "total_attempts": total,
        }

    async def close(self) -> None:
        if self._owns_client:
            await self.redis.aclose()

"""
Sliding Window Rate Limiter
===========================
Process-local sliding-log limiter with hourly and daily ceilings.
"""

import math
from typing import Dict, List, Optional

import structlog

from otpgate.clock import Clock, SystemClock

from .models import DAY_SECONDS, HOUR_SECONDS, RateLimitInfo, RateLimitReason

logger = structlog.get_logger(__name__)


class SlidingWindowRateLimiter:
    """
    Sliding-log rate limiter kept in process memory.

    Each key owns a list of dispatch timestamps. Entries are created on the
    first check, pruned on every check, and dropped by prune() once empty.
    Limits are per process; use RedisSlidingWindowLimiter when several
    processes must share them.
    """

    def __init__(
        self,
        hourly_cap: int = 5,
        daily_cap: int = 20,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            hourly_cap: Dispatches allowed in any trailing hour
            daily_cap: Dispatches allowed in any trailing 24 hours
            clock: Time source
        """
        self.hourly_cap = hourly_cap
        self.daily_cap = daily_cap
        self.clock = clock or SystemClock()
        self._attempts: Dict[str, List[float]] = {}

    async def check_and_record(self, key: str) -> RateLimitInfo:
        """
        Check the ceilings for a key and record the dispatch when allowed.

        Args:
            key: Phone number

        Returns:
            RateLimitInfo with decision and quota
        """
        now = self.clock.timestamp()
        attempts = [t for t in self._attempts.get(key, []) if t > now - DAY_SECONDS]
        in_hour = [t for t in attempts if t > now - HOUR_SECONDS]

        if len(in_hour) >= self.hourly_cap:
            self._attempts[key] = attempts
            reset_at = in_hour[0] + HOUR_SECONDS
            logger.warning("Hourly SMS limit reached", attempts=len(in_hour))
            return RateLimitInfo(
                allowed=False,
                remaining=0,
                limit=self.hourly_cap,
                reset_at=int(reset_at),
                retry_after=max(1, math.ceil(reset_at - now)),
                reason=RateLimitReason.HOURLY,
            )

        if len(attempts) >= self.daily_cap:
            self._attempts[key] = attempts
            reset_at = attempts[0] + DAY_SECONDS
            logger.warning("Daily SMS limit reached", attempts=len(attempts))
            return RateLimitInfo(
                allowed=False,
                remaining=0,
                limit=self.daily_cap,
                reset_at=int(reset_at),
                retry_after=max(1, math.ceil(reset_at - now)),
                reason=RateLimitReason.DAILY,
            )

        attempts.append(now)
        self._attempts[key] = attempts
        in_hour.append(now)

        return RateLimitInfo(
            allowed=True,
            remaining=min(self.hourly_cap - len(in_hour), self.daily_cap - len(attempts)),
            limit=self.hourly_cap,
            reset_at=int(in_hour[0] + HOUR_SECONDS),
        )

    async def prune(self) -> int:
        """
        Drop timestamps older than 24 hours and remove empty entries.

        Returns:
            Number of keys removed
        """
        cutoff = self.clock.timestamp() - DAY_SECONDS
        removed = 0
        for key in list(self._attempts):
            fresh = [t for t in self._attempts[key] if t > cutoff]
            if fresh:
                self._attempts[key] = fresh
            else:
                del self._attempts[key]
                removed += 1
        if removed:
            logger.info("Rate limit entries pruned", removed=removed)
        return removed

    async def stats(self) -> Dict[str, int]:
        """Snapshot of tracked numbers and attempts."""
        hour_ago = self.clock.timestamp() - HOUR_SECONDS
        limited = sum(
            1 for attempts in self._attempts.values()
            if sum(1 for t in attempts if t > hour_ago) >= self.hourly_cap
        )
        return {
            "tracked_numbers": len(self._attempts),
            "rate_limited_numbers": limited,
            "total_attempts": sum(len(a) for a in self._attempts.values()),
        }

    async def close(self) -> None:
        self._attempts.clear()

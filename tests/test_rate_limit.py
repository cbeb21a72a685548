"""
Rate Limiter Tests
==================
Sliding-log ceilings for SMS dispatch, in memory and on Redis.
"""

import pytest

from otpgate.rate_limit import (
    RateLimitReason,
    RateLimitResult,
    RedisSlidingWindowLimiter,
    SlidingWindowRateLimiter,
)


class FakeRedis:
    """The sorted-set subset of redis.asyncio the limiter uses."""

    def __init__(self):
        self.zsets = {}
        self.expiries = {}
        self.closed = False

    @staticmethod
    def _bound(value, upper=False):
        if value == "+inf":
            return float("inf"), False
        if value == "-inf":
            return float("-inf"), False
        if isinstance(value, str) and value.startswith("("):
            return float(value[1:]), True
        return float(value), False

    def _in_range(self, score, low, high):
        lo, lo_excl = self._bound(low)
        hi, hi_excl = self._bound(high)
        above = score > lo if lo_excl else score >= lo
        below = score < hi if hi_excl else score <= hi
        return above and below

    def _sorted(self, key):
        return sorted(self.zsets.get(key, {}).items(), key=lambda item: item[1])

    async def zremrangebyscore(self, key, low, high):
        zset = self.zsets.get(key, {})
        doomed = [m for m, s in zset.items() if self._in_range(s, low, high)]
        for member in doomed:
            del zset[member]
        return len(doomed)

    async def zcount(self, key, low, high):
        return sum(1 for _, s in self._sorted(key) if self._in_range(s, low, high))

    async def zrangebyscore(self, key, low, high, start=0, num=None, withscores=False):
        items = [(m, s) for m, s in self._sorted(key) if self._in_range(s, low, high)]
        items = items[start:start + num] if num is not None else items[start:]
        return items if withscores else [m for m, _ in items]

    async def zcard(self, key):
        return len(self.zsets.get(key, {}))

    async def zrange(self, key, start, end, withscores=False):
        items = self._sorted(key)[start:end + 1]
        return items if withscores else [m for m, _ in items]

    async def zadd(self, key, mapping):
        self.zsets.setdefault(key, {}).update(mapping)
        return len(mapping)

    async def expire(self, key, seconds):
        self.expiries[key] = seconds
        return True

    async def scan_iter(self, match=None):
        prefix = match.rstrip("*") if match else ""
        for key in list(self.zsets):
            if key.startswith(prefix):
                yield key

    async def aclose(self):
        self.closed = True


class BrokenRedis:
    async def zremrangebyscore(self, *args, **kwargs):
        raise ConnectionError("redis down")


class TestSlidingWindowRateLimiter:
    """Tests for the in-memory limiter."""

    @pytest.mark.asyncio
    async def test_hourly_cap(self, clock):
        """Exactly hourly_cap sends pass in a rolling hour; the next is denied."""
        limiter = SlidingWindowRateLimiter(hourly_cap=5, daily_cap=20, clock=clock)

        for i in range(5):
            info = await limiter.check_and_record("9812345678")
            assert info.allowed, f"send {i + 1} should be allowed"
            clock.advance(minutes=1)

        info = await limiter.check_and_record("9812345678")

        assert info.allowed is False
        assert info.result == RateLimitResult.BLOCKED
        assert info.reason == RateLimitReason.HOURLY
        # Oldest entry is 5 minutes old: it leaves the window in 55 minutes.
        assert info.retry_after == 55 * 60
        assert "per hour" in info.message

    @pytest.mark.asyncio
    async def test_window_boundary_is_exclusive(self, clock):
        """An entry exactly one hour old no longer counts."""
        limiter = SlidingWindowRateLimiter(hourly_cap=1, daily_cap=20, clock=clock)
        assert (await limiter.check_and_record("9812345678")).allowed

        clock.advance(seconds=3599)
        assert not (await limiter.check_and_record("9812345678")).allowed

        clock.advance(seconds=1)
        assert (await limiter.check_and_record("9812345678")).allowed

    @pytest.mark.asyncio
    async def test_denied_attempts_are_not_recorded(self, clock):
        limiter = SlidingWindowRateLimiter(hourly_cap=1, daily_cap=20, clock=clock)
        await limiter.check_and_record("9812345678")
        await limiter.check_and_record("9812345678")
        await limiter.check_and_record("9812345678")

        assert (await limiter.stats())["total_attempts"] == 1

    @pytest.mark.asyncio
    async def test_daily_cap(self, clock):
        limiter = SlidingWindowRateLimiter(hourly_cap=5, daily_cap=20, clock=clock)
        for _ in range(4):
            for _ in range(5):
                assert (await limiter.check_and_record("9812345678")).allowed
            clock.advance(hours=1)

        info = await limiter.check_and_record("9812345678")

        assert info.allowed is False
        assert info.reason == RateLimitReason.DAILY
        assert info.retry_after == 20 * 3600
        assert "per day" in info.message

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, clock):
        limiter = SlidingWindowRateLimiter(hourly_cap=1, daily_cap=20, clock=clock)

        assert (await limiter.check_and_record("9812345678")).allowed
        assert (await limiter.check_and_record("9876543210")).allowed

    @pytest.mark.asyncio
    async def test_remaining_counts_down(self, clock):
        limiter = SlidingWindowRateLimiter(hourly_cap=3, daily_cap=20, clock=clock)

        remaining = [(await limiter.check_and_record("9812345678")).remaining for _ in range(3)]

        assert remaining == [2, 1, 0]

    @pytest.mark.asyncio
    async def test_prune_removes_idle_numbers(self, clock):
        limiter = SlidingWindowRateLimiter(clock=clock)
        await limiter.check_and_record("9812345678")
        clock.advance(hours=1)
        await limiter.check_and_record("9876543210")

        clock.advance(hours=23, seconds=30)
        removed = await limiter.prune()

        assert removed == 1
        assert (await limiter.stats())["tracked_numbers"] == 1

    @pytest.mark.asyncio
    async def test_stats(self, clock):
        limiter = SlidingWindowRateLimiter(hourly_cap=2, daily_cap=20, clock=clock)
        for _ in range(2):
            await limiter.check_and_record("9812345678")
        await limiter.check_and_record("9876543210")

        stats = await limiter.stats()

        assert stats == {
            "tracked_numbers": 2,
            "rate_limited_numbers": 1,
            "total_attempts": 3,
        }


class TestRedisSlidingWindowLimiter:
    """Tests for the Redis limiter against a fake client."""

    @pytest.mark.asyncio
    async def test_hourly_cap(self, clock):
        redis = FakeRedis()
        limiter = RedisSlidingWindowLimiter(redis, hourly_cap=5, daily_cap=20, clock=clock)

        for _ in range(5):
            assert (await limiter.check_and_record("9812345678")).allowed
            clock.advance(minutes=1)
        info = await limiter.check_and_record("9812345678")

        assert info.allowed is False
        assert info.reason == RateLimitReason.HOURLY
        assert info.retry_after == 55 * 60
        assert redis.expiries["otpgate:sms:9812345678"] == 24 * 3600

    @pytest.mark.asyncio
    async def test_window_boundary_is_exclusive(self, clock):
        limiter = RedisSlidingWindowLimiter(FakeRedis(), hourly_cap=1, daily_cap=20, clock=clock)
        assert (await limiter.check_and_record("9812345678")).allowed

        clock.advance(seconds=3600)

        assert (await limiter.check_and_record("9812345678")).allowed

    @pytest.mark.asyncio
    async def test_daily_cap(self, clock):
        limiter = RedisSlidingWindowLimiter(FakeRedis(), hourly_cap=5, daily_cap=10, clock=clock)
        for _ in range(2):
            for _ in range(5):
                assert (await limiter.check_and_record("9812345678")).allowed
            clock.advance(hours=1)

        info = await limiter.check_and_record("9812345678")

        assert info.allowed is False
        assert info.reason == RateLimitReason.DAILY
        assert info.retry_after == 22 * 3600

    @pytest.mark.asyncio
    async def test_fails_open_when_redis_is_down(self, clock):
        limiter = RedisSlidingWindowLimiter(BrokenRedis(), clock=clock)

        info = await limiter.check_and_record("9812345678")

        assert info.allowed is True

    @pytest.mark.asyncio
    async def test_stats_and_close(self, clock):
        redis = FakeRedis()
        limiter = RedisSlidingWindowLimiter(redis, clock=clock, owns_client=True)
        await limiter.check_and_record("9812345678")
        await limiter.check_and_record("9876543210")

        stats = await limiter.stats()
        await limiter.close()

        assert stats["tracked_numbers"] == 2
        assert stats["total_attempts"] == 2
        assert stats["rate_limited_numbers"] == 0
        assert redis.closed is True

    @pytest.mark.asyncio
    async def test_stats_counts_limited_numbers(self, clock):
        limiter = RedisSlidingWindowLimiter(FakeRedis(), hourly_cap=2, daily_cap=20, clock=clock)
        for _ in range(2):
            await limiter.check_and_record("9812345678")
        await limiter.check_and_record("9876543210")

        assert (await limiter.stats())["rate_limited_numbers"] == 1

        clock.advance(hours=1)

        assert (await limiter.stats())["rate_limited_numbers"] == 0

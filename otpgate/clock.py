"""
Time Source
===========
Every "now" read in otpgate goes through a Clock so tests can freeze time.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


class Clock:
    """Wall-clock time source (UTC)."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def timestamp(self) -> float:
        return self.now().timestamp()


class SystemClock(Clock):
    """Default clock backed by the system time."""


class ManualClock(Clock):
    """
    Clock that only moves when told to.

    Usage:
        clock = ManualClock()
        clock.advance(minutes=5)
    """

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        if value.tzinfo is None:
            raise ValueError("ManualClock requires timezone-aware datetimes")
        self._now = value

    def advance(self, seconds: float = 0, minutes: float = 0, hours: float = 0) -> datetime:
        self._now += timedelta(seconds=seconds, minutes=minutes, hours=hours)
        return self._now

"""
Rate Limit Models
=================
Data models for SMS dispatch rate-limit decisions.
"""

from typing import Optional
from dataclasses import dataclass
from enum import Enum

HOUR_SECONDS = 60 * 60
DAY_SECONDS = 24 * HOUR_SECONDS


class RateLimitResult(str, Enum):
    """Rate limit decision result."""
    ALLOWED = "allowed"
    BLOCKED = "blocked"


class RateLimitReason(str, Enum):
    """Which ceiling denied the request."""
    HOURLY = "hourly"
    DAILY = "daily"


@dataclass
class RateLimitInfo:
    """Rate limit check result with quota information."""
    allowed: bool
    remaining: int
    limit: int
    reset_at: int  # Unix timestamp
    retry_after: Optional[int] = None  # Seconds until retry allowed
    reason: Optional[RateLimitReason] = None

    @property
    def result(self) -> RateLimitResult:
        return RateLimitResult.ALLOWED if self.allowed else RateLimitResult.BLOCKED

    @property
    def message(self) -> str:
        if self.allowed:
            return "Allowed"
        if self.reason == RateLimitReason.DAILY:
            return f"Daily SMS limit exceeded. Maximum {self.limit} per day allowed."
        return f"Too many SMS requests. Maximum {self.limit} per hour allowed."

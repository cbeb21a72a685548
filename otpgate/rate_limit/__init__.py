"""
Rate Limiting
=============
Per-phone-number sliding-window limits on SMS dispatch.
"""

from .models import RateLimitInfo, RateLimitReason, RateLimitResult
from .redis_limiter import RedisSlidingWindowLimiter
from .sliding_window import SlidingWindowRateLimiter

__all__ = [
    # Models
    "RateLimitInfo",
    "RateLimitReason",
    "RateLimitResult",
    # Limiters
    "SlidingWindowRateLimiter",
    "RedisSlidingWindowLimiter",
]

"""
Retry Logic
===========
Bounded retries for transient transport failures.
"""

from .exceptions import RetryExhausted, TransientSendError
from .backoff import retry_with_backoff

__all__ = [
    "RetryExhausted",
    "TransientSendError",
    "retry_with_backoff",
]

"""
Event Logging
=============
Append-only diagnostic trail of the verification flow.
"""

from .event_types import EventType
from .models import LogEvent
from .logger import EventLog

__all__ = [
    "EventType",
    "LogEvent",
    "EventLog",
]

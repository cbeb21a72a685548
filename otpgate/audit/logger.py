"""
Event Log
=========
Writes diagnostic LogEvents to the record store.
"""

import uuid
from typing import Dict, Any, Optional, Union
import structlog

from otpgate.errors import StoreFailure
from otpgate.models import LOG_KIND
from otpgate.store import RecordStore

from .event_types import EventType
from .models import LogEvent

logger = structlog.get_logger(__name__)


class EventLog:
    """
    Append-only diagnostic event log.

    Events are never read back by the verification flow. A store failure
    while writing one is logged and does not fail the caller's request.
    """

    def __init__(self, store: RecordStore):
        self.store = store

    async def record(
        self,
        event_type: Union[EventType, str],
        payload: Optional[Dict[str, Any]] = None,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> LogEvent:
        """
        Append an event.

        Args:
            event_type: Type of event
            payload: JSON-serializable event data
            ip: Client IP address
            user_agent: Client user agent

        Returns:
            The LogEvent as written
        """
        event_type_str = (
            event_type.value if isinstance(event_type, EventType)
            else event_type
        )
        event_id = str(uuid.uuid4())
        payload = payload or {}

        doc = {
            "id": event_id,
            "event_type": event_type_str,
            "payload": payload,
            "ip": ip,
            "user_agent": user_agent,
        }

        try:
            stored = await self.store.put(LOG_KIND, event_id, doc)
            timestamp = stored["created_at"]
        except StoreFailure as e:
            logger.error("Failed to write log event", event_type=event_type_str, error=str(e))
            timestamp = self.store.clock.now()

        return LogEvent(
            id=event_id,
            event_type=event_type_str,
            payload=payload,
            timestamp=timestamp,
            ip=ip,
            user_agent=user_agent,
        )

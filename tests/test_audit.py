"""
Event Log Tests
===============
"""

import pytest

from otpgate.audit import EventLog, EventType
from otpgate.errors import StoreFailure
from otpgate.logging_setup import mask_phone
from otpgate.models import LOG_KIND


class TestEventLog:
    """Tests for EventLog.record()."""

    @pytest.mark.asyncio
    async def test_record_writes_event(self, store, clock):
        log = EventLog(store)

        event = await log.record(
            EventType.OTP_SENT, {"provider": "panel"}, ip="10.0.0.1", user_agent="pytest"
        )

        stored = await store.get(LOG_KIND, event.id)
        assert stored["event_type"] == "otp.sent"
        assert stored["payload"] == {"provider": "panel"}
        assert stored["ip"] == "10.0.0.1"
        assert event.timestamp == clock.now()
        assert event.to_dict()["timestamp"] == clock.now().isoformat()

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, store):
        log = EventLog(store)

        first = await log.record("custom.event")
        second = await log.record("custom.event")

        assert first.id != second.id
        assert await store.count_where(LOG_KIND) == 2

    @pytest.mark.asyncio
    async def test_store_failure_does_not_raise(self, store, monkeypatch):
        async def broken_put(*args, **kwargs):
            raise StoreFailure("disk full")

        monkeypatch.setattr(store, "put", broken_put)

        event = await EventLog(store).record(EventType.USER_CREATED, {"uid": "phone_1"})

        assert event.event_type == "user.created"


class TestMaskPhone:
    """Tests for log masking."""

    def test_mask_phone(self):
        assert mask_phone("9812345678") == "******5678"
        assert mask_phone("123") == "***"
        assert mask_phone(None) is None

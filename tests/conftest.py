"""
Shared fixtures for otpgate tests.
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from otpgate.clock import ManualClock
from otpgate.config import VerificationConfig
from otpgate.gateway import MessagingGateway
from otpgate.otp import OtpEngine, SessionToken
from otpgate.providers import BaseProviderAdapter, MessageStatus, SendResult
from otpgate.rate_limit import SlidingWindowRateLimiter
from otpgate.service import VerificationService
from otpgate.store import InMemoryRecordStore

PHONE = "9812345678"


class FakeAdapter(BaseProviderAdapter):
    """
    Scripted SMS transport.

    Each send pops the next outcome: True (accepted), False (rejected) or
    an exception instance (raised). Once the script runs out every send
    succeeds.
    """

    def __init__(self, name: str = "fake", outcomes: Optional[List[Any]] = None, delay: float = 0.0):
        super().__init__()
        self.name = name
        self.outcomes = list(outcomes or [])
        self.delay = delay
        self.sent: List[Dict[str, str]] = []

    async def send_sms(self, to, body, metadata=None) -> SendResult:
        self.sent.append({"to": to, "body": body})
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.outcomes.pop(0) if self.outcomes else True
        if isinstance(outcome, Exception):
            raise outcome
        if outcome:
            return SendResult(
                success=True,
                provider_message_id=f"{self.name}_{len(self.sent)}",
                status=MessageStatus.SENT,
            )
        return SendResult(
            success=False,
            status=MessageStatus.FAILED,
            error_message=f"{self.name} rejected the message",
        )


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def store(clock):
    return InMemoryRecordStore(clock=clock)


@pytest.fixture
def config():
    return VerificationConfig(
        environment="development",
        session_secret="test-secret",
        retry_backoff_seconds=0.0,
        send_timeout_seconds=1.0,
    )


@pytest.fixture
def limiter(clock, config):
    return SlidingWindowRateLimiter(
        hourly_cap=config.hourly_cap,
        daily_cap=config.daily_cap,
        clock=clock,
    )


@pytest.fixture
def primary():
    return FakeAdapter("primary")


@pytest.fixture
def fallback():
    return FakeAdapter("fallback")


@pytest.fixture
def gateway(primary, fallback):
    return MessagingGateway(
        primary,
        fallback=fallback,
        retries=3,
        backoff_seconds=0.0,
        timeout_seconds=1.0,
    )


@pytest.fixture
def engine(store, clock, config):
    return OtpEngine.from_config(store, config, clock)


@pytest.fixture
def service(config, store, limiter, gateway, engine, clock):
    return VerificationService(
        config,
        store,
        limiter,
        gateway,
        engine=engine,
        session_tokens=SessionToken(config.session_secret, clock),
        clock=clock,
    )

"""
Application Factory
===================
Wires configuration, store, rate limiter, gateway and sweeper into a
FastAPI application.

Usage:
    uvicorn otpgate.app:create_app --factory
"""

import secrets
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI

from otpgate import __version__
from otpgate.api import create_verification_router
from otpgate.audit import EventLog
from otpgate.cleanup import CleanupSweeper
from otpgate.clock import Clock, SystemClock
from otpgate.config import VerificationConfig
from otpgate.gateway import MessagingGateway
from otpgate.health import create_health_router, sms_provider_check
from otpgate.logging_setup import setup_logging
from otpgate.otp import SessionToken
from otpgate.rate_limit import RedisSlidingWindowLimiter, SlidingWindowRateLimiter
from otpgate.service import VerificationService
from otpgate.store import InMemoryRecordStore, RecordStore, SqlRecordStore

logger = structlog.get_logger(__name__)


def build_store(config: VerificationConfig, clock: Clock) -> RecordStore:
    if config.database_url:
        return SqlRecordStore(config.database_url, clock=clock)
    logger.warning("DATABASE_URL not set, using in-memory record store")
    return InMemoryRecordStore(clock=clock)


def build_rate_limiter(config: VerificationConfig, clock: Clock):
    if config.redis_url:
        return RedisSlidingWindowLimiter.from_url(
            config.redis_url,
            hourly_cap=config.hourly_cap,
            daily_cap=config.daily_cap,
            clock=clock,
        )
    return SlidingWindowRateLimiter(
        hourly_cap=config.hourly_cap,
        daily_cap=config.daily_cap,
        clock=clock,
    )


def create_app(
    config: Optional[VerificationConfig] = None,
    store: Optional[RecordStore] = None,
    rate_limiter=None,
    gateway: Optional[MessagingGateway] = None,
    clock: Optional[Clock] = None,
    configure_logging: bool = True,
) -> FastAPI:
    """
    Build the verification application.

    Components not passed in are built from the config: a SQL store when
    DATABASE_URL is set (in-memory otherwise) and a Redis limiter when
    REDIS_URL is set (process-local otherwise).

    Raises:
        ValueError: If the config is invalid in production
    """
    config = config or VerificationConfig.from_env()
    if configure_logging:
        setup_logging(config.service_name, config.log_level, config.log_json)

    problems = config.validate()
    for problem in problems:
        logger.warning("Configuration problem", problem=problem)
    if problems and config.is_production:
        raise ValueError(f"Invalid configuration: {'; '.join(problems)}")

    clock = clock or SystemClock()
    store = store or build_store(config, clock)
    rate_limiter = rate_limiter or build_rate_limiter(config, clock)
    gateway = gateway or MessagingGateway.from_config(config)

    secret = config.session_secret
    if not secret:
        logger.warning("SESSION_SECRET not set, session tokens will not survive a restart")
        secret = secrets.token_urlsafe(32)

    event_log = EventLog(store)
    service = VerificationService(
        config,
        store,
        rate_limiter,
        gateway,
        event_log=event_log,
        session_tokens=SessionToken(secret, clock),
        clock=clock,
    )
    sweeper = CleanupSweeper(
        store,
        rate_limiter=rate_limiter,
        clock=clock,
        interval_seconds=config.sweep_interval_seconds,
        run_on_start=config.sweep_on_start,
        event_log=event_log,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await store.initialize()
        await gateway.initialize()
        await sweeper.start()
        logger.info("Verification service started", environment=config.environment)
        try:
            yield
        finally:
            await sweeper.stop()
            await gateway.close()
            await rate_limiter.close()
            await store.close()
            logger.info("Verification service stopped")

    app = FastAPI(title="otpgate", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.service = service
    app.state.sweeper = sweeper

    app.include_router(create_verification_router(service))
    app.include_router(
        create_health_router(
            config.service_name,
            version=__version__,
            engine=getattr(store, "engine", None),
            redis_client=getattr(rate_limiter, "redis", None),
            custom_checks={"sms": sms_provider_check(gateway)},
        )
    )
    return app

"""
Health Checks
=============
Liveness, readiness and component status for the verification service.

Component map:
    database  record store engine (SqlRecordStore only)
    redis     shared rate limiter (RedisSlidingWindowLimiter only)
    sms       messaging gateway transports
"""

import time
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional

import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import text

logger = structlog.get_logger(__name__)

OK_STATUSES = ("connected", "configured")


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ComponentHealth(BaseModel):
    status: str
    latency_ms: Optional[float] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in OK_STATUSES


class HealthResponse(BaseModel):
    status: HealthStatus
    service: str
    version: str
    components: Dict[str, ComponentHealth]
    timestamp: float


HealthCheck = Callable[[], Awaitable[ComponentHealth]]


async def _probe(component: str, ping: Callable[[], Awaitable[object]]) -> ComponentHealth:
    """Time a round trip; any exception marks the component as errored."""
    started = time.perf_counter()
    try:
        await ping()
    except Exception as e:
        logger.error("Health probe failed", component=component, error=str(e))
        return ComponentHealth(status="error", error=str(e))
    elapsed_ms = (time.perf_counter() - started) * 1000
    return ComponentHealth(status="connected", latency_ms=round(elapsed_ms, 2))


async def check_database(engine) -> ComponentHealth:
    async def ping():
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    return await _probe("database", ping)


async def check_redis(redis_client) -> ComponentHealth:
    return await _probe("redis", redis_client.ping)


def sms_provider_check(gateway) -> HealthCheck:
    """Report whether the gateway's transports are usable."""

    async def check() -> ComponentHealth:
        providers = await gateway.health()
        down = sorted(name for name, usable in providers.items() if not usable)
        if not down:
            return ComponentHealth(status="configured")
        if len(down) == len(providers):
            return ComponentHealth(status="error", error="no SMS provider configured")
        return ComponentHealth(status="degraded", error=f"unavailable: {', '.join(down)}")

    return check


def create_health_router(
    service_name: str,
    version: str = "1.0.0",
    engine=None,
    redis_client=None,
    custom_checks: Optional[Dict[str, HealthCheck]] = None,
) -> APIRouter:
    """
    Create the health router.

    Args:
        service_name: Name reported in /health
        version: Service version
        engine: SQLAlchemy async engine behind the record store (optional)
        redis_client: Redis client behind the rate limiter (optional)
        custom_checks: Extra named component checks (optional)

    Returns:
        Router with /health, /health/live and /health/ready
    """
    router = APIRouter(tags=["Health"])
    extra_checks = dict(custom_checks or {})

    async def gather_components() -> Dict[str, ComponentHealth]:
        components: Dict[str, ComponentHealth] = {}
        if engine is not None:
            components["database"] = await check_database(engine)
        if redis_client is not None:
            components["redis"] = await check_redis(redis_client)
        for name, check_fn in extra_checks.items():
            try:
                components[name] = await check_fn()
            except Exception as e:
                logger.error("Health check raised", component=name, error=str(e))
                components[name] = ComponentHealth(status="error", error=str(e))
        return components

    @router.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        components = await gather_components()

        # Only the database is critical; the Redis limiter fails open and
        # SMS problems surface per request.
        if "database" in components and not components["database"].ok:
            overall = HealthStatus.UNHEALTHY
        elif all(c.ok for c in components.values()):
            overall = HealthStatus.HEALTHY
        else:
            overall = HealthStatus.DEGRADED

        return HealthResponse(
            status=overall,
            service=service_name,
            version=version,
            components=components,
            timestamp=time.time(),
        )

    @router.get("/health/live")
    async def live():
        return {"status": "alive"}

    @router.get("/health/ready")
    async def ready():
        if engine is not None and not (await check_database(engine)).ok:
            return JSONResponse(
                status_code=503,
                content={"status": "not_ready", "reason": "database_unavailable"},
            )
        return {"status": "ready"}

    return router

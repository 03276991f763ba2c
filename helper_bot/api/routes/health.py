"""
Health Check Endpoints

Provides health, readiness, and liveness probes for monitoring
and container orchestration.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from helper_bot.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])

# Track application start time for uptime calculation
_start_time: Optional[datetime] = None


def set_start_time() -> None:
    """Set application start time. Called once on startup."""
    global _start_time
    _start_time = datetime.now(timezone.utc)


def get_uptime_seconds() -> Optional[float]:
    """Get application uptime in seconds."""
    if _start_time is None:
        return None
    return (datetime.now(timezone.utc) - _start_time).total_seconds()


class HealthResponse(BaseModel):
    """Basic health check response."""
    status: str
    timestamp: datetime
    version: str
    environment: str


class ReadyResponse(BaseModel):
    """Readiness check response with dependency status."""
    status: str
    timestamp: datetime
    checks: dict[str, str]


class LiveResponse(BaseModel):
    """Liveness check response."""
    status: str
    timestamp: datetime
    uptime_seconds: Optional[float] = None


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the process is running. Does not check dependencies.",
)
async def health() -> HealthResponse:
    """Basic health check."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version="1.0.0",
        environment=settings.app_env,
    )


@router.get(
    "/ready",
    response_model=ReadyResponse,
    summary="Readiness probe",
    description="Checks the queue consumer and the platform API. Returns 503 if either is unavailable.",
    responses={
        200: {"description": "Consuming updates and platform reachable"},
        503: {"description": "Consumer down or platform unreachable"},
    },
)
async def ready(request: Request) -> ReadyResponse:
    """
    Readiness probe.

    Checks:
    - RabbitMQ consumer is connected and subscribed
    - Platform API answers for the bot user
    """
    checks = {}
    all_ok = True
    bot = getattr(request.app.state, "bot", None)

    if bot is None:
        checks["bot"] = "not_started"
        all_ok = False
    else:
        consumer_ok = bot.consumer.is_ready
        checks["rabbitmq"] = "ok" if consumer_ok else "failed"
        if not consumer_ok:
            all_ok = False
            logger.warning("Readiness check: RabbitMQ consumer not ready")

        try:
            platform_ok = await bot.platform.check_health(bot.settings.bot_user_id)
            checks["platform"] = "ok" if platform_ok else "failed"
            if not platform_ok:
                all_ok = False
                logger.warning("Readiness check: Platform unhealthy")
        except Exception as e:
            checks["platform"] = "error"
            all_ok = False
            logger.error(f"Readiness check: Platform error - {e}")

    response = ReadyResponse(
        status="ready" if all_ok else "not_ready",
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )

    if not all_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(mode="json"),
        )

    return response


@router.get(
    "/live",
    response_model=LiveResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
    description="Returns 200 if the process is alive.",
)
async def live() -> LiveResponse:
    """Liveness probe."""
    return LiveResponse(
        status="alive",
        timestamp=datetime.now(timezone.utc),
        uptime_seconds=get_uptime_seconds(),
    )

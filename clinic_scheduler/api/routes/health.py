"""
Health Check Endpoints

Liveness, readiness and a summary check. Only the database is required
for readiness: without Redis transcripts live in process memory, and
without an agent key the chat assistant is off while the REST surface
keeps working.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from clinic_scheduler.api.deps import get_services
from clinic_scheduler.container import ServiceContainer
from clinic_scheduler.infra.database import check_db_health
from clinic_scheduler.infra.redis import check_redis_health

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])

VERSION = "1.0.0"

_started_at: Optional[datetime] = None


def set_start_time() -> None:
    """Record process start. Called from the application lifespan."""
    global _started_at
    _started_at = datetime.now(timezone.utc)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    environment: str
    chat_enabled: bool


class ReadyResponse(BaseModel):
    status: str
    timestamp: datetime
    checks: dict[str, str] = Field(
        description="ok / failed for required dependencies, degraded / disabled for optional ones",
    )


class LiveResponse(BaseModel):
    status: str
    timestamp: datetime
    uptime_seconds: Optional[float] = None


async def _optional_checks(services: ServiceContainer) -> dict[str, str]:
    checks = {}
    if services.redis is None:
        checks["redis"] = "disabled"
    else:
        checks["redis"] = "ok" if await check_redis_health(services.redis) else "degraded"
    checks["agent"] = "ok" if services.conversation_loop is not None else "disabled"
    return checks


@router.get("", response_model=HealthResponse, summary="Basic health check")
async def health(services: ServiceContainer = Depends(get_services)) -> HealthResponse:
    """Process is up; dependencies are not contacted."""
    return HealthResponse(
        status="healthy",
        timestamp=_now(),
        version=VERSION,
        environment=services.settings.app_env,
        chat_enabled=services.conversation_loop is not None,
    )


@router.get(
    "/ready",
    response_model=ReadyResponse,
    summary="Readiness check",
    responses={503: {"description": "Database unavailable"}},
)
async def ready(services: ServiceContainer = Depends(get_services)):
    """503 when the database cannot serve queries."""
    db_ok = await check_db_health(services.database)
    checks = {"database": "ok" if db_ok else "failed"}
    checks.update(await _optional_checks(services))

    for name, state in checks.items():
        if state in ("failed", "degraded"):
            logger.warning(f"Readiness check: {name} {state}")

    response = ReadyResponse(
        status="ready" if db_ok else "not_ready",
        timestamp=_now(),
        checks=checks,
    )
    if not db_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(mode="json"),
        )
    return response


@router.get("/live", response_model=LiveResponse, summary="Liveness check")
async def live() -> LiveResponse:
    uptime = (_now() - _started_at).total_seconds() if _started_at else None
    return LiveResponse(status="alive", timestamp=_now(), uptime_seconds=uptime)

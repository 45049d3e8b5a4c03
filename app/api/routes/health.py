"""Health check endpoints."""

from datetime import datetime, timezone

import redis.asyncio as redis
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.dependencies import get_redis, get_storage
from app.config import Settings, get_settings
from app.errors import StorageError
from app.storage import Storage

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime


class ReadyCheck(BaseModel):
    """Individual readiness check."""

    status: str
    message: str | None = None


class ReadyResponse(BaseModel):
    """Readiness check response."""

    ready: bool
    checks: dict[str, ReadyCheck]


@router.get("/health", response_model=HealthResponse)
async def health():
    """
    Basic health check.

    Returns healthy if the service is running.
    """
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/ready", response_model=ReadyResponse)
async def ready(
    storage: Storage = Depends(get_storage),
    redis_client: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
):
    """
    Readiness check for all dependencies.

    Checks:
    - Database connectivity
    - Redis connectivity (scheduler broker)
    - Ingestion secrets configured
    """
    checks = {}
    all_ready = True

    # Check database
    try:
        await storage.ping()
        checks["db"] = ReadyCheck(status="ok", message=storage.kind.value if storage.kind else None)
    except StorageError as e:
        checks["db"] = ReadyCheck(status="error", message=str(e))
        all_ready = False

    # Check Redis
    try:
        await redis_client.ping()
        checks["redis"] = ReadyCheck(status="ok")
    except Exception as e:
        checks["redis"] = ReadyCheck(status="error", message=str(e))
        all_ready = False

    # Check ingestion secrets; missing ones only warn
    for name, value in (
        ("cron_secret", settings.cron_secret),
        ("admin_password", settings.admin_password),
        ("standings_ingest_secret", settings.standings_ingest_secret),
    ):
        if value:
            checks[name] = ReadyCheck(status="ok", message="Configured")
        else:
            checks[name] = ReadyCheck(status="warning", message="Not configured")

    return ReadyResponse(ready=all_ready, checks=checks)

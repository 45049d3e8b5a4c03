"""Cron endpoints: scheduled refresh trigger and its status."""

from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel

from app.api.dependencies import get_gate, get_standings_service, get_sync_service
from app.api.routes.standings import UpdateResponse
from app.config import Settings, get_settings
from app.errors import StorageError
from app.services.authorization import IngestionGate
from app.services.standings import StandingsSyncService

router = APIRouter(prefix="/api/cron", tags=["cron"])
logger = structlog.get_logger(__name__)


class CronStatusResponse(BaseModel):
    """Cron configuration and last run summary. Never exposes the secret."""

    configured: bool
    message: str
    schedule: str
    endpoint: str
    last_run: dict[str, Any] | None = None
    timestamp: datetime


@router.get("/standings", response_model=UpdateResponse)
async def cron_standings(
    authorization: str | None = Header(default=None),
    gate: IngestionGate = Depends(get_gate),
    service: StandingsSyncService = Depends(get_sync_service),
):
    """Platform cron hook: fetch and apply standings (Bearer CRON_SECRET)."""
    principal = gate.authorize_cron(authorization)
    result, provider = await service.refresh(source=principal.kind.value)
    return UpdateResponse(
        success=True,
        updated=result.updated_count,
        source=principal.kind.value,
        provider=provider,
    )


@router.get("/status", response_model=CronStatusResponse)
async def cron_status(
    settings: Settings = Depends(get_settings),
    service: StandingsSyncService = Depends(get_standings_service),
):
    """Whether the cron secret is configured and how the last refresh went."""
    schedule = settings.load_defaults_config().get("schedule", {})
    configured = settings.cron_configured
    try:
        last_run = await service.refresh_status()
    except StorageError as e:
        logger.warning("cron_status_unavailable", error=str(e))
        last_run = {"error": str(e)}
    return CronStatusResponse(
        configured=configured,
        message=(
            "CRON_SECRET is configured"
            if configured
            else "CRON_SECRET is not set. Add it to the environment."
        ),
        schedule=(
            f"Daily at {schedule.get('refresh_hour', 8):02d}:"
            f"{schedule.get('refresh_minute', 0):02d} UTC"
        ),
        endpoint="/api/standings/update",
        last_run=last_run,
        timestamp=datetime.now(timezone.utc),
    )

"""Standings API endpoints.

Read endpoints are public. The two write endpoints authorize the caller
before anything is fetched or written.
"""

from datetime import datetime
from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, Header
from pydantic import BaseModel

from app.api.dependencies import get_gate, get_standings_service, get_sync_service
from app.errors import ValidationError
from app.services.authorization import IngestionGate
from app.services.standings import StandingsSyncService

router = APIRouter(prefix="/api/standings", tags=["standings"])
logger = structlog.get_logger(__name__)


class StandingItem(BaseModel):
    """One row of the standings table."""

    rank: int
    team: str
    games_played: int
    wins: int
    losses: int
    ot_losses: int
    points: int
    last_updated: datetime | None = None


class LastUpdatedResponse(BaseModel):
    """When standings were last refreshed."""

    last_updated: datetime | None


class UpdateRequest(BaseModel):
    """Body of the update endpoint; both fields optional."""

    standings: Any = None
    password: str | None = None


class IngestRequest(BaseModel):
    """Body of the automation ingest endpoint."""

    standings: Any = None


class UpdateResponse(BaseModel):
    """Result envelope for standings writes."""

    success: bool
    updated: int | None = None
    source: str | None = None
    provider: str | None = None
    error: str | None = None


@router.get("", response_model=list[StandingItem])
async def list_standings(
    service: StandingsSyncService = Depends(get_standings_service),
):
    """Current standings ordered by points then wins."""
    records = await service.current_standings()
    return [
        StandingItem(
            rank=rank,
            team=r.team,
            games_played=r.games_played,
            wins=r.wins,
            losses=r.losses,
            ot_losses=r.ot_losses,
            points=r.points,
            last_updated=r.last_updated,
        )
        for rank, r in enumerate(records, start=1)
    ]


@router.get("/last-updated", response_model=LastUpdatedResponse)
async def last_updated(
    service: StandingsSyncService = Depends(get_standings_service),
):
    """Timestamp of the most recent standings write."""
    return LastUpdatedResponse(last_updated=await service.last_updated())


@router.post("/update", response_model=UpdateResponse)
async def update_standings(
    body: UpdateRequest | None = Body(default=None),
    authorization: str | None = Header(default=None),
    x_admin_password: str | None = Header(default=None),
    gate: IngestionGate = Depends(get_gate),
    service: StandingsSyncService = Depends(get_sync_service),
):
    """
    Update standings as the scheduler (Bearer CRON_SECRET) or an admin.

    With ``standings`` in the body the batch is applied as given; without
    it the standings are fetched from the configured providers.
    """
    body = body or UpdateRequest()
    principal = gate.authorize_update(authorization, x_admin_password or body.password)
    source = principal.kind.value

    if body.standings is not None:
        result = await service.apply(body.standings, source=source)
        provider = None
    else:
        result, provider = await service.refresh(source=source)

    logger.info(
        "standings_update_complete",
        source=source,
        provider=provider,
        updated=result.updated_count,
    )
    return UpdateResponse(
        success=True, updated=result.updated_count, source=source, provider=provider
    )


@router.post("/ingest", response_model=UpdateResponse)
async def ingest_standings(
    body: IngestRequest | None = Body(default=None),
    authorization: str | None = Header(default=None),
    gate: IngestionGate = Depends(get_gate),
    service: StandingsSyncService = Depends(get_standings_service),
):
    """Apply standings pushed by external automation (Bearer STANDINGS_INGEST_SECRET)."""
    principal = gate.authorize_automation(authorization)
    if body is None or body.standings is None:
        raise ValidationError("standings array is required")

    result = await service.apply(body.standings, source=principal.kind.value)
    return UpdateResponse(
        success=True, updated=result.updated_count, source=principal.kind.value
    )

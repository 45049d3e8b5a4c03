"""Leaderboard API endpoint.

Joins users, their latest predictions and the current standings in
process, then scores each owner with the pure scoring function.
"""

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.dependencies import (
    get_prediction_store,
    get_registry,
    get_standings_service,
)
from app.services.predictions import PredictionStore, build_leaderboard
from app.services.standings import StandingsSyncService, TeamRegistry

router = APIRouter(prefix="/api/leaderboard", tags=["leaderboard"])


class BreakdownItem(BaseModel):
    team: str
    predicted_rank: int
    actual_rank: int
    points: int
    status: str


class LeaderboardItem(BaseModel):
    """One owner's score."""

    rank: int
    owner_id: int
    name: str
    total: int
    max_possible: int
    submitted_at: datetime
    breakdown: list[BreakdownItem]


class LeaderboardResponse(BaseModel):
    items: list[LeaderboardItem]
    standings_last_updated: datetime | None


@router.get("", response_model=LeaderboardResponse)
async def leaderboard(
    service: StandingsSyncService = Depends(get_standings_service),
    store: PredictionStore = Depends(get_prediction_store),
    registry: TeamRegistry = Depends(get_registry),
):
    """Scores for every owner with a prediction, best first."""
    standings = await service.current_standings()
    predictions = await store.latest_for_all()
    users = await store.owners()

    entries = build_leaderboard(users, predictions, standings, registry.teams)
    return LeaderboardResponse(
        items=[
            LeaderboardItem(rank=position, **entry.to_dict())
            for position, entry in enumerate(entries, start=1)
        ],
        standings_last_updated=await service.last_updated(),
    )

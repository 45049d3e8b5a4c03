"""Prediction API endpoints."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel

from app.api.dependencies import get_prediction_store
from app.config import Settings, get_settings
from app.services.predictions import PredictionStore

router = APIRouter(prefix="/api/predictions", tags=["predictions"])


class PickItem(BaseModel):
    rank: int
    team: str


class PredictionResponse(BaseModel):
    """An owner's current prediction set (``predictions`` is null if none)."""

    predictions: list[PickItem] | None
    submitted_at: datetime | None = None
    last_updated: datetime | None = None


class SavePredictionRequest(BaseModel):
    predictions: Any = None


class SavePredictionResponse(BaseModel):
    success: bool
    message: str
    submitted_at: datetime
    last_updated: datetime


@router.get("/{owner_id}", response_model=PredictionResponse)
async def get_predictions(
    owner_id: int,
    store: PredictionStore = Depends(get_prediction_store),
):
    """Most recent prediction set for an owner."""
    current = await store.latest(owner_id)
    if current is None:
        return PredictionResponse(predictions=None)
    return PredictionResponse(
        predictions=[PickItem(rank=p.rank, team=p.team) for p in current.picks],
        submitted_at=current.submitted_at,
        last_updated=current.updated_at,
    )


@router.post("/{owner_id}", response_model=SavePredictionResponse)
async def save_predictions(
    owner_id: int,
    body: SavePredictionRequest = Body(...),
    store: PredictionStore = Depends(get_prediction_store),
    settings: Settings = Depends(get_settings),
):
    """Save an owner's ranking; refused once the prediction deadline has passed."""
    saved = await store.save(owner_id, body.predictions, deadline=settings.prediction_deadline)
    return SavePredictionResponse(
        success=True,
        message="Predictions saved successfully",
        submitted_at=saved.submitted_at,
        last_updated=saved.updated_at,
    )

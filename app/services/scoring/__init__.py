"""Scoring module for Atlantic Pool."""

from app.services.scoring.engine import (
    Pick,
    ScoreBreakdownEntry,
    ScoreResult,
    rank_standings,
    score,
    sort_standings,
)

__all__ = [
    "Pick",
    "ScoreBreakdownEntry",
    "ScoreResult",
    "rank_standings",
    "score",
    "sort_standings",
]

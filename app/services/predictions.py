"""Prediction sets and the leaderboard built from them.

A prediction set is a permutation of ranks 1..N over the division's N
teams. Each save replaces the owner's current set; only the most recent
row per owner is authoritative.
"""

import json
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog

from app.errors import DeadlinePassedError, NotFoundError, ValidationError
from app.services.scoring import Pick, ScoreResult, score
from app.services.standings.sync import coerce_datetime
from app.services.standings.teams import TeamRegistry
from app.storage import Storage

logger = structlog.get_logger(__name__)


@dataclass
class PredictionSet:
    """An owner's current ranking of the division."""

    owner_id: int
    picks: list[Pick]
    submitted_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "picks": [{"rank": p.rank, "team": p.team} for p in self.picks],
            "submitted_at": self.submitted_at,
            "updated_at": self.updated_at,
        }


def validate_picks(raw: Any, team_ids: Iterable[str]) -> list[Pick]:
    """
    Validate a submitted ranking.

    Ranks must be exactly 1..N and every division team must appear once.

    Raises:
        ValidationError: If the ranking is not a full permutation
    """
    team_ids = set(team_ids)
    expected = len(team_ids)

    if not isinstance(raw, list) or len(raw) != expected:
        raise ValidationError(f"predictions must be an array of {expected} teams")

    picks = []
    for item in raw:
        if not isinstance(item, dict) or "team" not in item or "rank" not in item:
            raise ValidationError("each prediction needs a team and a rank")
        rank = item["rank"]
        if isinstance(rank, bool) or not isinstance(rank, int):
            raise ValidationError(f"rank must be an integer, got {rank!r}")
        picks.append(Pick(rank=rank, team=str(item["team"])))

    teams = [p.team for p in picks]
    if len(set(teams)) != expected:
        raise ValidationError("Duplicate teams detected. Each team must be unique.")
    unknown = set(teams) - team_ids
    if unknown:
        raise ValidationError(f"Unknown teams: {', '.join(sorted(unknown))}")
    if sorted(p.rank for p in picks) != list(range(1, expected + 1)):
        raise ValidationError(f"All ranks 1-{expected} must be assigned.")

    return sorted(picks, key=lambda p: p.rank)


def _decode_picks(raw: str) -> list[Pick]:
    return [Pick(rank=int(p["rank"]), team=str(p["team"])) for p in json.loads(raw)]


def _row_to_set(row: dict[str, Any]) -> PredictionSet:
    return PredictionSet(
        owner_id=row["user_id"],
        picks=_decode_picks(row["predictions"]),
        submitted_at=coerce_datetime(row["submitted_at"]),
        updated_at=coerce_datetime(row["last_updated"]),
    )


class PredictionStore:
    """Read and write prediction sets through the storage adapter."""

    def __init__(self, storage: Storage, registry: TeamRegistry):
        self.storage = storage
        self.registry = registry

    async def latest(self, owner_id: int) -> PredictionSet | None:
        row = await self.storage.query_one(
            """
            SELECT id, user_id, predictions, submitted_at, last_updated
            FROM predictions
            WHERE user_id = $1
            ORDER BY last_updated DESC, id DESC
            LIMIT 1
            """,
            [owner_id],
        )
        return _row_to_set(row) if row else None

    async def owners(self) -> list[dict[str, Any]]:
        """All pool participants."""
        return await self.storage.query_all("SELECT id, name FROM users ORDER BY name")

    async def latest_for_all(self) -> dict[int, PredictionSet]:
        """Most recent prediction set per owner."""
        rows = await self.storage.query_all(
            """
            SELECT id, user_id, predictions, submitted_at, last_updated
            FROM predictions
            ORDER BY user_id, last_updated DESC, id DESC
            """
        )
        latest: dict[int, PredictionSet] = {}
        for row in rows:
            if row["user_id"] not in latest:
                latest[row["user_id"]] = _row_to_set(row)
        return latest

    async def save(
        self,
        owner_id: int,
        raw_picks: Any,
        deadline: datetime | None = None,
    ) -> PredictionSet:
        """
        Replace the owner's current prediction set.

        Raises:
            DeadlinePassedError: If the prediction window has closed
            ValidationError: If the ranking is not a full permutation
            NotFoundError: If the owner does not exist
        """
        now = datetime.now(timezone.utc)
        if deadline is not None and now >= coerce_datetime(deadline):
            raise DeadlinePassedError("The prediction deadline has passed")

        picks = validate_picks(raw_picks, self.registry.team_ids)

        user = await self.storage.query_one("SELECT id FROM users WHERE id = $1", [owner_id])
        if user is None:
            raise NotFoundError(f"User {owner_id} not found")

        encoded = json.dumps([{"rank": p.rank, "team": p.team} for p in picks])
        current = await self.latest(owner_id)
        if current is None:
            await self.storage.execute(
                """
                INSERT INTO predictions (user_id, predictions, submitted_at, last_updated)
                VALUES ($1, $2, $3, $4)
                """,
                [owner_id, encoded, now, now],
            )
            submitted_at = now
        else:
            await self.storage.execute(
                """
                UPDATE predictions
                SET predictions = $1, last_updated = $2
                WHERE user_id = $3
                """,
                [encoded, now, owner_id],
            )
            submitted_at = current.submitted_at

        logger.info("predictions_saved", owner_id=owner_id, first_save=current is None)
        return PredictionSet(
            owner_id=owner_id, picks=picks, submitted_at=submitted_at, updated_at=now
        )


@dataclass
class LeaderboardEntry:
    owner_id: int
    name: str
    result: ScoreResult
    submitted_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "name": self.name,
            "submitted_at": self.submitted_at,
            **self.result.to_dict(),
        }


def build_leaderboard(
    users: Sequence[dict[str, Any]],
    predictions: dict[int, PredictionSet],
    standings: Sequence[Any],
    team_names: dict[str, str] | None = None,
) -> list[LeaderboardEntry]:
    """Score every owner with a prediction set, best total first then by name."""
    names = {u["id"]: u["name"] for u in users}
    entries = [
        LeaderboardEntry(
            owner_id=owner_id,
            name=names.get(owner_id, str(owner_id)),
            result=score(prediction.picks, standings, team_names),
            submitted_at=prediction.submitted_at,
        )
        for owner_id, prediction in predictions.items()
    ]
    return sorted(entries, key=lambda e: (-e.result.total, e.name.casefold()))

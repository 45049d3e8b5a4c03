"""Standings upsert engine.

Applies a validated batch to the ``standings`` table keyed by team. Each
team is its own unit of work: a cycle that fails partway leaves the teams
already applied updated and the rest untouched, and re-applying the same
batch only refreshes ``last_updated``.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog

from app.services.standings.records import validate_batch
from app.storage import Storage

logger = structlog.get_logger(__name__)


@dataclass
class UpsertResult:
    """Counts from one ``apply_standings`` call."""

    updated_count: int
    inserted: int = 0
    replaced: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "updated_count": self.updated_count,
            "inserted": self.inserted,
            "replaced": self.replaced,
        }


class StandingsUpserter:
    """Write standings through the storage adapter."""

    def __init__(self, storage: Storage):
        self.storage = storage

    async def apply_standings(self, records: Sequence[Any]) -> UpsertResult:
        """
        Validate then upsert every record, in the order given.

        Args:
            records: StandingRecord instances or raw payload dicts

        Returns:
            UpsertResult with the number of teams written

        Raises:
            ValidationError: Before any write, if the batch is malformed
            StorageError: If a write fails; earlier teams stay applied
        """
        batch = validate_batch(records)
        now = datetime.now(timezone.utc)
        result = UpsertResult(updated_count=0)

        for record in batch:
            existing = await self.storage.query_one(
                "SELECT id FROM standings WHERE team = $1",
                [record.team],
            )
            if existing:
                await self.storage.execute(
                    """
                    UPDATE standings
                    SET games_played = $1, wins = $2, losses = $3,
                        ot_losses = $4, points = $5, last_updated = $6
                    WHERE team = $7
                    """,
                    [
                        record.games_played,
                        record.wins,
                        record.losses,
                        record.ot_losses,
                        record.points,
                        now,
                        record.team,
                    ],
                )
                result.replaced += 1
            else:
                await self.storage.execute(
                    """
                    INSERT INTO standings
                        (team, games_played, wins, losses, ot_losses, points, last_updated)
                    VALUES ($1, $2, $3, $4, $5, $6, $7)
                    """,
                    [
                        record.team,
                        record.games_played,
                        record.wins,
                        record.losses,
                        record.ot_losses,
                        record.points,
                        now,
                    ],
                )
                result.inserted += 1
            result.updated_count += 1

        logger.info("standings_applied", **result.to_dict())
        return result

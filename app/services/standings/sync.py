"""Standings synchronisation service.

Ties the fetcher and the upsert engine together and answers the read-side
questions (current table, last refresh). Every update attempt is recorded
in ``job_runs``.
"""

import json
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

import structlog

from app.errors import AcquisitionError, ConfigurationError, PoolError, StorageError
from app.services.standings.fetcher import StandingsFetcher
from app.services.standings.records import StandingRecord
from app.services.standings.upsert import StandingsUpserter, UpsertResult
from app.services.scoring import sort_standings
from app.storage import Storage

logger = structlog.get_logger(__name__)

JOB_NAME = "standings_update"


def coerce_datetime(value: Any) -> datetime | None:
    """Normalize a timestamp column; SQLite returns text, PostgreSQL datetimes."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


class StandingsSyncService:
    """Acquire, persist and read division standings."""

    def __init__(self, storage: Storage, fetcher: StandingsFetcher | None = None):
        self.storage = storage
        self.fetcher = fetcher
        self.upserter = StandingsUpserter(storage)

    async def apply(
        self, records: Sequence[Any], source: str = "manual"
    ) -> UpsertResult:
        """
        Validate and persist a pre-fetched batch.

        Args:
            records: StandingRecord instances or raw payload dicts
            source: Label recorded with the job run (cron, admin, ingest)
        """
        started_at = datetime.now(timezone.utc)
        try:
            result = await self.upserter.apply_standings(records)
        except PoolError as e:
            await self._record_run(started_at, "failed", 0, str(e), {"source": source})
            raise
        await self._record_run(
            started_at, "success", result.updated_count, None,
            {"source": source, **result.to_dict()},
        )
        return result

    async def refresh(self, source: str = "fetch") -> tuple[UpsertResult, str]:
        """
        Fetch standings from the providers and persist them.

        Nothing is written to ``standings`` unless a complete result was
        acquired.

        Returns:
            The upsert result and the provider that supplied the data
        """
        if self.fetcher is None:
            raise ConfigurationError("No standings fetcher configured")

        started_at = datetime.now(timezone.utc)
        try:
            acquisition = await self.fetcher.acquire()
        except AcquisitionError as e:
            await self._record_run(
                started_at, "failed", 0, str(e),
                {"source": source, "attempts": [a.to_dict() for a in e.attempts]},
            )
            raise

        metadata = {
            "source": source,
            "provider": acquisition.provider,
            "attempts": [a.to_dict() for a in acquisition.attempts],
        }
        try:
            result = await self.upserter.apply_standings(acquisition.records)
        except PoolError as e:
            await self._record_run(started_at, "failed", 0, str(e), metadata)
            raise
        await self._record_run(
            started_at, "success", result.updated_count, None,
            {**metadata, **result.to_dict()},
        )
        return result, acquisition.provider

    async def current_standings(self) -> list[StandingRecord]:
        """Current table, best first, one row per team."""
        rows = await self.storage.query_all(
            """
            SELECT team, games_played, wins, losses, ot_losses, points, last_updated
            FROM standings
            ORDER BY points DESC, wins DESC
            """
        )
        seen: set[str] = set()
        records = []
        for row in rows:
            if row["team"] in seen:
                continue
            seen.add(row["team"])
            records.append(
                StandingRecord(
                    team=row["team"],
                    games_played=row["games_played"],
                    wins=row["wins"],
                    losses=row["losses"],
                    ot_losses=row["ot_losses"],
                    points=row["points"],
                    last_updated=coerce_datetime(row["last_updated"]),
                )
            )
        return sort_standings(records)

    async def last_updated(self) -> datetime | None:
        row = await self.storage.query_one(
            "SELECT MAX(last_updated) AS last_updated FROM standings"
        )
        return coerce_datetime(row["last_updated"]) if row else None

    async def refresh_status(self) -> dict[str, Any] | None:
        """Most recent standings update attempt, or None if there never was one."""
        row = await self.storage.query_one(
            """
            SELECT job_name, started_at, completed_at, status,
                   records_processed, error_message, metadata
            FROM job_runs
            WHERE job_name = $1
            ORDER BY started_at DESC, id DESC
            LIMIT 1
            """,
            [JOB_NAME],
        )
        if row is None:
            return None
        metadata = row["metadata"]
        if isinstance(metadata, str):
            metadata = json.loads(metadata)
        return {
            "status": row["status"],
            "started_at": coerce_datetime(row["started_at"]),
            "completed_at": coerce_datetime(row["completed_at"]),
            "records_processed": row["records_processed"],
            "error": row["error_message"],
            "metadata": metadata,
        }

    async def _record_run(
        self,
        started_at: datetime,
        status: str,
        records_processed: int,
        error_message: str | None,
        metadata: dict[str, Any],
    ) -> None:
        """Write the audit row. A failure here never masks the update outcome."""
        try:
            await self.storage.execute(
                """
                INSERT INTO job_runs
                    (job_name, started_at, completed_at, status,
                     records_processed, error_message, metadata)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                """,
                [
                    JOB_NAME,
                    started_at,
                    datetime.now(timezone.utc),
                    status,
                    records_processed,
                    error_message,
                    metadata,
                ],
            )
        except StorageError as e:
            logger.warning("job_run_record_failed", status=status, error=str(e))

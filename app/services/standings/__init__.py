"""Standings ingestion module for Atlantic Pool."""

from app.services.standings.fetcher import (
    RetryPolicy,
    StandingsFetcher,
    build_fetcher,
)
from app.services.standings.records import StandingRecord, validate_batch
from app.services.standings.sync import StandingsSyncService
from app.services.standings.teams import TeamRegistry, load_team_registry
from app.services.standings.upsert import StandingsUpserter, UpsertResult

__all__ = [
    "RetryPolicy",
    "StandingRecord",
    "StandingsFetcher",
    "StandingsSyncService",
    "StandingsUpserter",
    "TeamRegistry",
    "UpsertResult",
    "build_fetcher",
    "load_team_registry",
    "validate_batch",
]

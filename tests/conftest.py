"""Pytest configuration and fixtures for Atlantic Pool tests."""

import pytest

from app.config import Settings
from app.models import Base
from app.services.standings import StandingRecord, load_team_registry
from app.storage import create_storage

DIVISION_CONFIG = {
    "division": {
        "teams": {
            "BOS": "Boston Bruins",
            "BUF": "Buffalo Sabres",
            "DET": "Detroit Red Wings",
            "FLA": "Florida Panthers",
            "MTL": "Montreal Canadiens",
            "OTT": "Ottawa Senators",
            "TB": "Tampa Bay Lightning",
            "TOR": "Toronto Maple Leafs",
        },
        "aliases": {"Montréal Canadiens": "Montreal Canadiens"},
        "abbreviations": {"TBL": "TB"},
    },
    "standings": {
        "providers": [
            {"name": "primary", "kind": "nhl_web", "url": "https://primary.test/standings"},
            {
                "name": "secondary",
                "kind": "statsapi",
                "url": "https://secondary.test/standings",
                "flaky": True,
            },
        ]
    },
    "schedule": {"refresh_hour": 8, "refresh_minute": 0},
}

# (name, games_played, wins, losses, ot_losses, points), best first
SAMPLE_TABLE = [
    ("Florida Panthers", 20, 14, 4, 2, 30),
    ("Toronto Maple Leafs", 20, 13, 5, 2, 28),
    ("Boston Bruins", 20, 12, 6, 2, 26),
    ("Tampa Bay Lightning", 20, 11, 7, 2, 24),
    ("Detroit Red Wings", 20, 10, 8, 2, 22),
    ("Ottawa Senators", 20, 9, 9, 2, 20),
    ("Buffalo Sabres", 20, 8, 10, 2, 18),
    ("Montreal Canadiens", 20, 7, 11, 2, 16),
]


@pytest.fixture
def division_config():
    """defaults.yaml-shaped config for the Atlantic division."""
    return DIVISION_CONFIG


@pytest.fixture
def registry():
    """Team registry for the Atlantic division."""
    return load_team_registry(DIVISION_CONFIG)


@pytest.fixture
def sample_records():
    """A complete, valid standings batch."""
    return [
        StandingRecord(
            team=name,
            games_played=gp,
            wins=w,
            losses=l,
            ot_losses=otl,
            points=pts,
        )
        for name, gp, w, l, otl, pts in SAMPLE_TABLE
    ]


@pytest.fixture
def sample_payload(sample_records):
    """The sample batch in the ingestion wire format."""
    return [r.to_payload() for r in sample_records]


@pytest.fixture
def settings():
    """Settings with every ingestion secret configured."""
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        cron_secret="cron-secret",
        admin_password="admin-password",
        standings_ingest_secret="ingest-secret",
        provider_retry_base_delay=0.0,
        provider_retry_max_delay=0.0,
    )


@pytest.fixture
async def storage():
    """In-memory SQLite storage with the full schema."""
    storage = create_storage("sqlite+aiosqlite:///:memory:")
    async with storage.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield storage
    await storage.dispose()

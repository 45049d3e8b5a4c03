"""Application settings and configuration management."""

from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./atlantic_pool.db",
        description="PostgreSQL or SQLite connection URL; the scheme selects the backend",
    )
    db_pool_size: int = Field(default=10, description="Database connection pool size")
    db_max_overflow: int = Field(default=20, description="Max overflow connections")
    db_ssl: bool = Field(default=False, description="Require SSL for PostgreSQL")
    db_connect_timeout: float = Field(
        default=10.0, description="Seconds to wait for a PostgreSQL connection"
    )

    # Redis (Celery broker)
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )

    # Ingestion credentials (empty = not configured)
    cron_secret: str = Field(default="", description="Bearer secret for scheduled jobs")
    admin_password: str = Field(default="", description="Administrator password")
    standings_ingest_secret: str = Field(
        default="", description="Bearer secret for external automation pushes"
    )

    # Standings acquisition
    standings_fetch_timeout: float = Field(
        default=12.0, description="Per-provider request timeout in seconds"
    )
    standings_expected_count: int = Field(
        default=8, description="Teams a complete division result must contain"
    )
    provider_retry_attempts: int = Field(
        default=3, description="Attempts for providers flagged as flaky"
    )
    provider_retry_base_delay: float = Field(
        default=1.0, description="Base delay in seconds for exponential backoff"
    )
    provider_retry_max_delay: float = Field(
        default=8.0, description="Upper bound for a single backoff delay"
    )

    # Predictions
    prediction_deadline: datetime | None = Field(
        default=None, description="Predictions become read-only after this instant"
    )

    # Application
    public_base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL the scheduler and push job call",
    )
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # Paths
    config_path: Path = Field(
        default=Path(__file__).parent / "defaults.yaml",
        description="Path to defaults.yaml configuration",
    )

    @property
    def cron_configured(self) -> bool:
        """Check if the cron secret is configured."""
        return bool(self.cron_secret)

    def load_defaults_config(self) -> dict[str, Any]:
        """Load the defaults.yaml configuration file."""
        if self.config_path.exists():
            with open(self.config_path) as f:
                return yaml.safe_load(f) or {}
        return {}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()

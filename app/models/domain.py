"""Domain models for Atlantic Pool.

The tables are owned by the migrations in ``app/migrations``; application
code reads and writes them through the storage adapter with plain SQL.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin


class Standing(Base):
    """
    Aggregate record of one team in the division.

    Exactly one row per team. Rows are replaced field-for-field by every
    successful ingestion cycle; history is not kept.
    """

    __tablename__ = "standings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    team: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    games_played: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    wins: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    losses: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    ot_losses: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    __table_args__ = (Index("idx_standings_rank", "points", "wins"),)

    def __repr__(self) -> str:
        return f"<Standing {self.team} pts={self.points}>"


class User(Base, TimestampMixin):
    """Pool participant."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)

    predictions: Mapped[list["Prediction"]] = relationship(
        "Prediction", back_populates="user"
    )

    def __repr__(self) -> str:
        return f"<User {self.name}>"


class Prediction(Base):
    """
    A user's ranking of the division.

    Several rows may exist per user; the one with the latest
    ``last_updated`` is authoritative.
    """

    __tablename__ = "predictions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    picks: Mapped[str] = mapped_column(
        "predictions", Text, nullable=False, doc="JSON list of {rank, team}"
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="predictions")

    __table_args__ = (
        Index("idx_predictions_user_updated", "user_id", "last_updated"),
    )

    def __repr__(self) -> str:
        return f"<Prediction user={self.user_id} at={self.last_updated}>"


class JobRun(Base):
    """
    Ingestion audit log.

    Every standings update attempt is logged here, successful or not, so
    operators can see when and from where standings were last refreshed
    and why a cycle failed.
    """

    __tablename__ = "job_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_name: Mapped[str] = mapped_column(String(100), nullable=False)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, doc="'success' or 'failed'"
    )
    records_processed: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    job_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSON, nullable=True
    )

    __table_args__ = (Index("idx_job_runs_name_started", "job_name", "started_at"),)

    def __repr__(self) -> str:
        return f"<JobRun {self.job_name} status={self.status}>"

"""Normalized standings records and batch validation."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from app.errors import ValidationError

# Accepted spellings for each field in incoming payloads
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "games_played": ("gamesPlayed", "games_played", "gp"),
    "wins": ("wins", "w"),
    "losses": ("losses", "l"),
    "ot_losses": ("otherLosses", "otLosses", "ot_losses", "otl"),
    "points": ("points", "pts"),
}

REQUIRED_FIELDS = ("games_played", "points")


@dataclass(frozen=True)
class StandingRecord:
    """One team's aggregate record, keyed by team name."""

    team: str
    games_played: int
    wins: int
    losses: int
    ot_losses: int
    points: int
    last_updated: datetime | None = None

    @classmethod
    def from_payload(cls, payload: Any, index: int = 0) -> "StandingRecord":
        """
        Build a record from an ingestion payload item.

        Raises:
            ValidationError: If the team is missing or a stat is not a
                non-negative integer
        """
        if isinstance(payload, StandingRecord):
            payload.validate(index)
            return payload
        if not isinstance(payload, Mapping):
            raise ValidationError(f"Record {index}: expected an object")

        team = payload.get("team")
        if not isinstance(team, str) or not team.strip():
            raise ValidationError(f"Record {index}: team is required")

        values: dict[str, int] = {}
        for field_name, aliases in FIELD_ALIASES.items():
            raw = next((payload[a] for a in aliases if a in payload), None)
            if raw is None:
                if field_name in REQUIRED_FIELDS:
                    raise ValidationError(
                        f"Record {index} ({team}): {aliases[0]} is required"
                    )
                raw = 0
            values[field_name] = _to_count(raw, f"Record {index} ({team}): {aliases[0]}")

        return cls(team=team.strip(), **values)

    def validate(self, index: int = 0) -> None:
        """Check the invariants of an already-built record."""
        if not isinstance(self.team, str) or not self.team.strip():
            raise ValidationError(f"Record {index}: team is required")
        for field_name in FIELD_ALIASES:
            _to_count(getattr(self, field_name), f"Record {index} ({self.team}): {field_name}")

    def to_payload(self) -> dict[str, Any]:
        """Serialize in the ingestion wire format."""
        return {
            "team": self.team,
            "gamesPlayed": self.games_played,
            "wins": self.wins,
            "losses": self.losses,
            "otherLosses": self.ot_losses,
            "points": self.points,
        }


def _to_count(value: Any, label: str) -> int:
    """Coerce a stat to a non-negative int or raise ``ValidationError``."""
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be numeric")
    if isinstance(value, int):
        number = value
    elif isinstance(value, float) and value.is_integer():
        number = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        number = int(value.strip())
    else:
        raise ValidationError(f"{label} must be numeric, got {value!r}")
    if number < 0:
        raise ValidationError(f"{label} must not be negative")
    return number


def validate_batch(records: Any) -> list[StandingRecord]:
    """
    Validate a whole batch before anything is written.

    Raises:
        ValidationError: If the batch is empty, any record is malformed, or
            a team appears twice
    """
    if not isinstance(records, Sequence) or isinstance(records, (str, bytes)):
        raise ValidationError("standings must be a list of records")
    if not records:
        raise ValidationError("No standings data to update")

    validated = [StandingRecord.from_payload(item, i) for i, item in enumerate(records)]

    seen: set[str] = set()
    for record in validated:
        if record.team in seen:
            raise ValidationError(f"Duplicate team in batch: {record.team}")
        seen.add(record.team)

    return validated

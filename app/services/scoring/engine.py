"""Prediction scoring engine.

Scores a user's predicted ranking against the actual standings.

Points per pick, by distance between predicted and actual rank:
- exact position: 3
- off by one: 1
- off by two or more: 0

A team that cannot be found in the standings gets actual rank 0 and
scores 0. The function is pure: identical inputs always give identical
breakdowns, which keeps leaderboards reproducible.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

POINTS_EXACT = 3
POINTS_OFF_BY_ONE = 1


class RankedTeam(Protocol):
    """Anything with the fields used for ranking (StandingRecord, ORM rows)."""

    team: str
    points: int
    wins: int


@dataclass(frozen=True)
class Pick:
    """One entry of a prediction set."""

    rank: int
    team: str


@dataclass(frozen=True)
class ScoreBreakdownEntry:
    """Scoring detail for one pick."""

    team: str
    predicted_rank: int
    actual_rank: int
    points: int
    status: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "team": self.team,
            "predicted_rank": self.predicted_rank,
            "actual_rank": self.actual_rank,
            "points": self.points,
            "status": self.status,
        }


@dataclass(frozen=True)
class ScoreResult:
    """Total score with per-pick breakdown."""

    total: int
    breakdown: tuple[ScoreBreakdownEntry, ...]
    max_possible: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "max_possible": self.max_possible,
            "breakdown": [entry.to_dict() for entry in self.breakdown],
        }


def sort_standings(standings: Iterable[RankedTeam]) -> list:
    """
    Order standings by points then wins, both descending.

    The sort is stable so ties keep their input order. Display and scoring
    both go through this function.
    """
    return sorted(standings, key=lambda s: (-s.points, -s.wins))


def rank_standings(standings: Iterable[RankedTeam]) -> dict[str, int]:
    """Map team name to 1-based rank. Duplicate teams keep their best rank."""
    ranks: dict[str, int] = {}
    for position, standing in enumerate(sort_standings(standings), start=1):
        ranks.setdefault(standing.team, position)
    return ranks


def points_for_distance(distance: int) -> tuple[int, str]:
    """Points and status label for the distance between ranks."""
    if distance == 0:
        return POINTS_EXACT, "exact"
    if distance == 1:
        return POINTS_OFF_BY_ONE, "off_by_one"
    return 0, "off_by_two_or_more"


def _as_pick(pick: Any) -> Pick:
    if isinstance(pick, Pick):
        return pick
    return Pick(rank=int(pick["rank"]), team=str(pick["team"]))


def score(
    picks: Sequence[Pick | Mapping[str, Any]],
    standings: Iterable[RankedTeam],
    team_names: Mapping[str, str] | None = None,
) -> ScoreResult:
    """
    Score a prediction set.

    Args:
        picks: Picks in submission order, as ``Pick`` or ``{rank, team}``
        standings: Current standings in any order
        team_names: Optional pick-id to standings-name mapping (``TB`` ->
            ``Tampa Bay Lightning``); ids without a mapping are used as-is

    Returns:
        ScoreResult; breakdown entries follow the order of ``picks``
    """
    ranks = rank_standings(standings)
    breakdown = []
    total = 0

    for raw in picks:
        pick = _as_pick(raw)
        name = team_names.get(pick.team, pick.team) if team_names else pick.team
        actual_rank = ranks.get(name, 0)

        if actual_rank == 0:
            points, status = 0, "unranked"
        else:
            points, status = points_for_distance(abs(actual_rank - pick.rank))

        total += points
        breakdown.append(
            ScoreBreakdownEntry(
                team=pick.team,
                predicted_rank=pick.rank,
                actual_rank=actual_rank,
                points=points,
                status=status,
            )
        )

    return ScoreResult(
        total=total,
        breakdown=tuple(breakdown),
        max_possible=POINTS_EXACT * len(breakdown),
    )

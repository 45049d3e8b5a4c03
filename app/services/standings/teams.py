"""Division team registry.

Maps pick identifiers (``TB``, ``BOS``, ...) to the canonical names stored
in ``standings.team`` and resolves the spellings external providers use.
"""

from dataclasses import dataclass, field
from typing import Any

from app.errors import ConfigurationError


@dataclass
class TeamRegistry:
    """The allow-list of teams competing in this pool."""

    teams: dict[str, str]
    aliases: dict[str, str] = field(default_factory=dict)
    abbreviations: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self._by_name = {name.casefold(): name for name in self.teams.values()}
        for alias, canonical in self.aliases.items():
            self._by_name[alias.casefold()] = canonical

    @property
    def names(self) -> set[str]:
        return set(self.teams.values())

    @property
    def team_ids(self) -> set[str]:
        return set(self.teams)

    def __len__(self) -> int:
        return len(self.teams)

    def name_for(self, team_id: str) -> str | None:
        return self.teams.get(team_id)

    def resolve(self, name: str | None = None, abbrev: str | None = None) -> str | None:
        """
        Resolve a provider's team reference to a canonical name.

        Returns None for teams outside the division.
        """
        if abbrev:
            team_id = self.abbreviations.get(abbrev, abbrev)
            if team_id in self.teams:
                return self.teams[team_id]
        if name:
            return self._by_name.get(name.strip().casefold())
        return None


def load_team_registry(config: dict[str, Any]) -> TeamRegistry:
    """
    Build the registry from the ``division`` section of defaults.yaml.

    Raises:
        ConfigurationError: If no teams are configured
    """
    division = config.get("division", {})
    teams = division.get("teams") or {}
    if not teams:
        raise ConfigurationError("No division teams configured")
    return TeamRegistry(
        teams={str(k): str(v) for k, v in teams.items()},
        aliases={str(k): str(v) for k, v in (division.get("aliases") or {}).items()},
        abbreviations={
            str(k): str(v) for k, v in (division.get("abbreviations") or {}).items()
        },
    )

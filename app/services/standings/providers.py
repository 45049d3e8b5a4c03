"""External standings providers.

Each provider has its own response shape and is normalized to
``StandingRecord`` before acceptance. A fetch never raises for ordinary
failures; it returns a tagged ``ProviderResult`` so the fallback loop can
tell "try the next provider" apart from "abort entirely".
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx
import structlog

from app.errors import ConfigurationError, ValidationError
from app.services.standings.records import StandingRecord, validate_batch
from app.services.standings.teams import TeamRegistry

logger = structlog.get_logger(__name__)


class ProviderOutcome(Enum):
    """Classification of a provider fetch."""

    OK = "ok"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    FATAL = "fatal"


class ProviderError(Exception):
    """Describes why a provider's response was not usable."""

    pass


class MalformedResponseError(ProviderError):
    """The response could not be parsed into standings."""

    pass


class IncompleteStandingsError(ProviderError):
    """Fewer division teams than a complete result requires."""

    pass


@dataclass
class ProviderResult:
    """Tagged result of one provider fetch."""

    outcome: ProviderOutcome
    records: list[StandingRecord] = field(default_factory=list)
    cause: BaseException | None = None

    @classmethod
    def ok(cls, records: list[StandingRecord]) -> "ProviderResult":
        return cls(ProviderOutcome.OK, records=records)

    @classmethod
    def not_found(cls, cause: BaseException) -> "ProviderResult":
        return cls(ProviderOutcome.NOT_FOUND, cause=cause)

    @classmethod
    def transient(cls, cause: BaseException) -> "ProviderResult":
        return cls(ProviderOutcome.TRANSIENT, cause=cause)

    @classmethod
    def fatal(cls, cause: BaseException) -> "ProviderResult":
        return cls(ProviderOutcome.FATAL, cause=cause)


Parser = Callable[[Any, TeamRegistry], list[StandingRecord]]


def parse_nhl_web(payload: Any, registry: TeamRegistry) -> list[StandingRecord]:
    """
    Parse the NHL web API shape.

    ``{"standings": [{"teamAbbrev": {"default": "BOS"},
    "teamName": {"default": "Boston Bruins"}, "gamesPlayed": ..., "wins": ...,
    "losses": ..., "otLosses": ..., "points": ...}, ...]}``
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("standings"), list):
        raise MalformedResponseError("missing standings list")

    records = []
    for row in payload["standings"]:
        if not isinstance(row, dict):
            continue
        team = registry.resolve(
            name=_localized(row.get("teamName")),
            abbrev=_localized(row.get("teamAbbrev")),
        )
        if team is None:
            continue
        records.append(
            StandingRecord(
                team=team,
                games_played=int(row["gamesPlayed"]),
                wins=int(row.get("wins") or 0),
                losses=int(row.get("losses") or 0),
                ot_losses=int(row.get("otLosses") or 0),
                points=int(row["points"]),
            )
        )
    return records


def parse_statsapi(payload: Any, registry: TeamRegistry) -> list[StandingRecord]:
    """
    Parse the legacy stats API shape, also served through CORS proxies.

    ``{"records": [{"teamRecords": [{"team": {"name": ...},
    "leagueRecord": {"wins": ..., "losses": ..., "ot": ...},
    "gamesPlayed": ..., "points": ...}]}]}``
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("records"), list):
        raise MalformedResponseError("missing records list")

    records = []
    for division in payload["records"]:
        for row in (division or {}).get("teamRecords") or []:
            team = registry.resolve(name=(row.get("team") or {}).get("name"))
            if team is None:
                continue
            league = row.get("leagueRecord") or {}
            nested = row.get("standings") or {}
            wins = int(league.get("wins") or 0)
            losses = int(league.get("losses") or 0)
            ot = int(league.get("ot") or 0)
            games_played = row.get("gamesPlayed", nested.get("gamesPlayed"))
            points = row.get("points", nested.get("points"))
            if points is None:
                raise MalformedResponseError(f"no points for {team}")
            records.append(
                StandingRecord(
                    team=team,
                    games_played=int(games_played) if games_played is not None else wins + losses + ot,
                    wins=wins,
                    losses=losses,
                    ot_losses=ot,
                    points=int(points),
                )
            )
    return records


def _localized(value: Any) -> str | None:
    """NHL web fields are either plain strings or ``{"default": ...}`` dicts."""
    if isinstance(value, dict):
        return value.get("default")
    return value


PARSERS: dict[str, Parser] = {
    "nhl_web": parse_nhl_web,
    "statsapi": parse_statsapi,
}


@dataclass
class StandingsProvider:
    """One external standings source."""

    name: str
    url: str
    parser: Parser
    flaky: bool = False

    async def fetch(
        self,
        client: httpx.AsyncClient,
        registry: TeamRegistry,
        timeout: float,
    ) -> ProviderResult:
        """Issue one request bounded by ``timeout`` and normalize the response."""
        try:
            response = await client.get(
                self.url,
                timeout=timeout,
                headers={"Accept": "application/json"},
            )
        except httpx.UnsupportedProtocol as e:
            return ProviderResult.fatal(e)
        except httpx.InvalidURL as e:
            return ProviderResult.fatal(e)
        except httpx.TimeoutException as e:
            return ProviderResult.transient(ProviderError(f"timed out after {timeout}s: {e!r}"))
        except httpx.HTTPError as e:
            return ProviderResult.transient(e)

        if response.status_code == 404:
            return ProviderResult.not_found(ProviderError("HTTP 404"))
        if not response.is_success:
            return ProviderResult.transient(ProviderError(f"HTTP {response.status_code}"))

        try:
            payload = response.json()
            records = self.parser(payload, registry)
        except MalformedResponseError as e:
            return ProviderResult.transient(e)
        except (ValueError, KeyError, TypeError) as e:
            return ProviderResult.transient(MalformedResponseError(f"invalid response: {e}"))

        if not records:
            return ProviderResult.not_found(ProviderError("no division teams in response"))

        # Negative stats or a team listed twice make the whole response unusable
        try:
            records = validate_batch(records)
        except ValidationError as e:
            return ProviderResult.transient(MalformedResponseError(f"invalid standings: {e}"))
        return ProviderResult.ok(records)


def load_providers(config: dict[str, Any]) -> list[StandingsProvider]:
    """
    Build the prioritized provider list from defaults.yaml.

    Raises:
        ConfigurationError: If no providers are configured or a kind is unknown
    """
    entries = config.get("standings", {}).get("providers") or []
    if not entries:
        raise ConfigurationError("No standings providers configured")

    providers = []
    for entry in entries:
        kind = entry.get("kind")
        parser = PARSERS.get(kind)
        if parser is None:
            raise ConfigurationError(f"Unknown standings provider kind: {kind}")
        if not entry.get("url"):
            raise ConfigurationError(f"Provider {entry.get('name') or kind} has no url")
        providers.append(
            StandingsProvider(
                name=entry.get("name") or kind,
                url=entry["url"],
                parser=parser,
                flaky=bool(entry.get("flaky", False)),
            )
        )
    return providers

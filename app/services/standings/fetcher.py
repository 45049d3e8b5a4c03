"""Multi-source standings fetcher.

No single provider is reachable from every deployment network, so the
fetcher walks a prioritized provider list and stops at the first complete
result. Provider-to-provider fallback is immediate; only providers flagged
``flaky`` are additionally wrapped in a bounded exponential backoff.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from app.errors import AcquisitionError
from app.services.standings.providers import (
    IncompleteStandingsError,
    ProviderOutcome,
    ProviderResult,
    StandingsProvider,
    load_providers,
)
from app.services.standings.records import StandingRecord
from app.services.standings.teams import TeamRegistry, load_team_registry

logger = structlog.get_logger(__name__)


@dataclass
class RetryPolicy:
    """Bounded exponential backoff for transient provider failures."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 8.0

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * 2**attempt, self.max_delay)

    async def run(
        self,
        operation: Callable[[], Awaitable[ProviderResult]],
        provider: str = "",
    ) -> ProviderResult:
        result = await operation()
        for attempt in range(1, max(self.max_attempts, 1)):
            if result.outcome is not ProviderOutcome.TRANSIENT:
                break
            wait_time = self.delay_for(attempt - 1)
            logger.warning(
                "provider_retrying",
                provider=provider,
                attempt=attempt,
                wait_time=wait_time,
                error=str(result.cause),
            )
            await asyncio.sleep(wait_time)
            result = await operation()
        return result


@dataclass
class ProviderAttempt:
    """Diagnostic record of one provider in a fetch cycle."""

    provider: str
    outcome: str
    error: str | None = None
    records: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "outcome": self.outcome,
            "error": self.error,
            "records": self.records,
        }


@dataclass
class Acquisition:
    """Accepted standings plus where they came from."""

    records: list[StandingRecord]
    provider: str
    attempts: list[ProviderAttempt] = field(default_factory=list)


class StandingsFetcher:
    """Acquire a complete division's standings from the first working provider."""

    def __init__(
        self,
        providers: list[StandingsProvider],
        registry: TeamRegistry,
        expected_count: int = 8,
        timeout: float = 12.0,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the fetcher.

        Args:
            providers: Providers in priority order
            registry: Allow-list of division teams
            expected_count: Records a complete result must contain
            timeout: Per-request timeout in seconds
            retry_policy: Backoff applied to providers flagged flaky
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.providers = providers
        self.registry = registry
        self.expected_count = expected_count
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.transport = transport

    async def fetch_standings(self) -> list[StandingRecord]:
        """
        Return normalized standings from the first complete provider.

        Raises:
            AcquisitionError: If every provider is exhausted
        """
        acquisition = await self.acquire()
        return acquisition.records

    async def acquire(self) -> Acquisition:
        """Like ``fetch_standings`` but also reports the provider and attempts."""
        attempts: list[ProviderAttempt] = []
        last_error: BaseException | None = None

        async with httpx.AsyncClient(transport=self.transport) as client:
            for provider in self.providers:
                if provider.flaky:
                    result = await self.retry_policy.run(
                        lambda: self._attempt(provider, client),
                        provider=provider.name,
                    )
                else:
                    result = await self._attempt(provider, client)

                attempts.append(
                    ProviderAttempt(
                        provider=provider.name,
                        outcome=result.outcome.value,
                        error=str(result.cause) if result.cause else None,
                        records=len(result.records),
                    )
                )

                if result.outcome is ProviderOutcome.OK:
                    logger.info(
                        "standings_acquired",
                        provider=provider.name,
                        records=len(result.records),
                    )
                    return Acquisition(
                        records=result.records,
                        provider=provider.name,
                        attempts=attempts,
                    )

                last_error = result.cause
                logger.warning(
                    "provider_failed",
                    provider=provider.name,
                    outcome=result.outcome.value,
                    error=str(result.cause),
                )

                if result.outcome is ProviderOutcome.FATAL:
                    raise AcquisitionError(
                        f"Standings provider {provider.name} failed fatally",
                        last_error=last_error,
                        attempts=attempts,
                    )

        logger.error(
            "standings_acquisition_failed",
            providers=len(self.providers),
            last_error=str(last_error),
        )
        raise AcquisitionError(
            "All standings providers failed",
            last_error=last_error,
            attempts=attempts,
        )

    async def _attempt(
        self, provider: StandingsProvider, client: httpx.AsyncClient
    ) -> ProviderResult:
        """Fetch once and apply the completeness rule."""
        result = await provider.fetch(client, self.registry, self.timeout)
        if result.outcome is not ProviderOutcome.OK:
            return result
        teams = {record.team for record in result.records}
        if len(teams) < self.expected_count:
            return ProviderResult.transient(
                IncompleteStandingsError(
                    f"expected {self.expected_count} teams, got {len(teams)}"
                )
            )
        return result


def build_fetcher(settings, config: dict[str, Any] | None = None) -> StandingsFetcher:
    """
    Build a fetcher from settings and defaults.yaml.

    Raises:
        ConfigurationError: If providers or teams are not configured
    """
    if config is None:
        config = settings.load_defaults_config()
    return StandingsFetcher(
        providers=load_providers(config),
        registry=load_team_registry(config),
        expected_count=settings.standings_expected_count,
        timeout=settings.standings_fetch_timeout,
        retry_policy=RetryPolicy(
            max_attempts=settings.provider_retry_attempts,
            base_delay=settings.provider_retry_base_delay,
            max_delay=settings.provider_retry_max_delay,
        ),
    )

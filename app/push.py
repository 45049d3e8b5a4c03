"""Out-of-band standings push.

Fetches standings with the multi-source fetcher wherever this runs (a CI
job, a workstation) and POSTs them to ``/api/standings/ingest`` with the
external automation secret. Useful when the deployment itself cannot reach
any standings provider.

Environment:
    STANDINGS_INGEST_URL     base URL of the deployment
    STANDINGS_INGEST_SECRET  bearer secret for the ingest endpoint
"""

import argparse
import asyncio
import os
import sys
from typing import Any

import httpx
import structlog

from app.config import get_settings
from app.errors import AcquisitionError, ConfigurationError
from app.services.standings import StandingsFetcher, build_fetcher

logger = structlog.get_logger(__name__)

INGEST_PATH = "/api/standings/ingest"


async def push_standings(
    base_url: str,
    secret: str,
    fetcher: StandingsFetcher,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any]:
    """
    Acquire standings and push them to the ingest endpoint.

    Raises:
        ConfigurationError: If the secret is empty
        AcquisitionError: If no provider returned a complete result
        httpx.HTTPStatusError: If the deployment rejected the push
    """
    if not secret:
        raise ConfigurationError("STANDINGS_INGEST_SECRET is required")

    acquisition = await fetcher.acquire()
    ingest_url = base_url.rstrip("/") + INGEST_PATH
    logger.info(
        "pushing_standings",
        url=ingest_url,
        provider=acquisition.provider,
        records=len(acquisition.records),
    )

    async with httpx.AsyncClient(timeout=30.0, transport=transport) as client:
        response = await client.post(
            ingest_url,
            json={"standings": [r.to_payload() for r in acquisition.records]},
            headers={"Authorization": f"Bearer {secret}"},
        )
    response.raise_for_status()
    return response.json()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--url",
        default=os.environ.get("STANDINGS_INGEST_URL"),
        help="Deployment base URL (default: $STANDINGS_INGEST_URL)",
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    base_url = args.url or settings.public_base_url
    secret = os.environ.get("STANDINGS_INGEST_SECRET") or settings.standings_ingest_secret

    try:
        result = asyncio.run(push_standings(base_url, secret, build_fetcher(settings)))
    except (ConfigurationError, AcquisitionError) as e:
        logger.error("push_failed", error=str(e))
        return 1
    except httpx.HTTPError as e:
        logger.error("push_rejected", error=str(e))
        return 1

    logger.info("push_complete", updated=result.get("updated"))
    return 0


if __name__ == "__main__":
    sys.exit(main())

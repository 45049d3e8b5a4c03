"""Scheduled standings refresh task."""

from typing import Any

import httpx
import structlog

from app.config import get_settings
from app.errors import ConfigurationError
from app.tasks import celery_app

logger = structlog.get_logger(__name__)

UPDATE_PATH = "/api/standings/update"

# Must outlast every provider timing out in turn on the server side
REQUEST_TIMEOUT = 120.0


@celery_app.task(bind=True, soft_time_limit=150, time_limit=180)
def refresh_standings(self):
    """
    Scheduled: Daily (see ``schedule`` in defaults.yaml)
    Timeout: 3 minutes

    POSTs to the standings update endpoint with the cron bearer secret.
    The endpoint fetches from the providers and applies the result; this
    task only reports what it answered.
    """
    import asyncio

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_refresh_standings_async(self))
    finally:
        loop.close()


async def _refresh_standings_async(
    task,
    settings=None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any]:
    """Async implementation of the scheduled refresh."""
    settings = settings or get_settings()
    if not settings.cron_secret:
        logger.error("refresh_task_misconfigured", setting="CRON_SECRET")
        raise ConfigurationError("CRON_SECRET not configured")

    url = settings.public_base_url.rstrip("/") + UPDATE_PATH
    async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT, transport=transport) as client:
        response = await client.post(
            url,
            headers={"Authorization": f"Bearer {settings.cron_secret}"},
        )

    try:
        data = response.json()
    except ValueError:
        data = {"success": False, "error": response.text[:500]}

    if response.is_success and data.get("success"):
        logger.info(
            "refresh_task_complete",
            updated=data.get("updated"),
            provider=data.get("provider"),
            task_id=getattr(task.request, "id", None) if task else None,
        )
    else:
        logger.error(
            "refresh_task_failed",
            status_code=response.status_code,
            error=data.get("error"),
            task_id=getattr(task.request, "id", None) if task else None,
        )
    return {"status_code": response.status_code, **data}

"""FastAPI dependencies for Atlantic Pool."""

import asyncio
from collections.abc import AsyncGenerator

import redis.asyncio as redis
from fastapi import Depends, Request

from app.config import Settings, get_settings
from app.services.authorization import IngestionGate
from app.services.predictions import PredictionStore
from app.services.standings import (
    StandingsFetcher,
    StandingsSyncService,
    TeamRegistry,
    build_fetcher,
    load_team_registry,
)
from app.storage import Storage, connect_storage


async def get_storage(request: Request) -> Storage:
    """
    Get the storage handle installed at startup.

    While the database is unavailable requests retry the connection one at a
    time, so the service recovers without a restart.
    """
    state = request.app.state
    if state.storage.available:
        return state.storage

    lock = getattr(state, "storage_lock", None)
    if lock is None:
        lock = state.storage_lock = asyncio.Lock()

    async with lock:
        # Another request may have reconnected while this one waited
        if not state.storage.available:
            stale = state.storage
            state.storage = await connect_storage(get_settings())
            await stale.dispose()
    return state.storage


async def get_redis() -> AsyncGenerator[redis.Redis, None]:
    """Get Redis client dependency."""
    settings = get_settings()
    client = redis.from_url(settings.redis_url)
    try:
        yield client
    finally:
        await client.aclose()


def get_gate(settings: Settings = Depends(get_settings)) -> IngestionGate:
    """Get the ingestion authorization gate."""
    return IngestionGate.from_settings(settings)


def get_registry(settings: Settings = Depends(get_settings)) -> TeamRegistry:
    """Get the division team registry."""
    return load_team_registry(settings.load_defaults_config())


def get_fetcher(settings: Settings = Depends(get_settings)) -> StandingsFetcher:
    """Get a standings fetcher. Building it performs no I/O."""
    return build_fetcher(settings)


def get_standings_service(
    storage: Storage = Depends(get_storage),
) -> StandingsSyncService:
    """Get a standings service without a fetcher, for endpoints that never fetch."""
    return StandingsSyncService(storage)


def get_sync_service(
    storage: Storage = Depends(get_storage),
    fetcher: StandingsFetcher = Depends(get_fetcher),
) -> StandingsSyncService:
    """Get the standings synchronisation service used by the write endpoints."""
    return StandingsSyncService(storage, fetcher)


def get_prediction_store(
    storage: Storage = Depends(get_storage),
    registry: TeamRegistry = Depends(get_registry),
) -> PredictionStore:
    """Get the prediction store."""
    return PredictionStore(storage, registry)

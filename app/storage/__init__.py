"""Storage adapter module for Atlantic Pool."""

from app.storage.adapter import (
    BackendKind,
    ExecuteResult,
    PostgresStorage,
    SQLiteStorage,
    Storage,
    UnavailableStorage,
    connect_storage,
    create_storage,
    detect_backend,
    normalize_url,
)

__all__ = [
    "BackendKind",
    "ExecuteResult",
    "PostgresStorage",
    "SQLiteStorage",
    "Storage",
    "UnavailableStorage",
    "connect_storage",
    "create_storage",
    "detect_backend",
    "normalize_url",
]

"""Storage adapter over PostgreSQL and SQLite.

Presents one query surface (``query_all``, ``query_one``, ``execute``,
``run_in_transaction``) regardless of the active backend. The backend is
chosen once from the database URL by ``create_storage``; the resulting
handle is passed down explicitly rather than kept in module state.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog
from sqlalchemy import event
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from app.errors import ConfigurationError, StorageError
from app.storage.binding import bind

logger = structlog.get_logger(__name__)

Statement = tuple[str, Sequence[Any]]

TABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class BackendKind(Enum):
    """Supported relational backends."""

    POSTGRES = "postgresql"
    SQLITE = "sqlite"


@dataclass
class ExecuteResult:
    """Outcome of a write statement."""

    affected_count: int


def detect_backend(database_url: str) -> BackendKind:
    """
    Decide which backend a connection URL targets.

    Raises:
        ConfigurationError: If the URL scheme is not supported
    """
    scheme = database_url.split(":", 1)[0].lower()
    if scheme in ("postgres", "postgresql") or scheme.startswith("postgresql+"):
        return BackendKind.POSTGRES
    if scheme == "sqlite" or scheme.startswith("sqlite+"):
        return BackendKind.SQLITE
    raise ConfigurationError(f"Unsupported database URL scheme: {scheme or '<empty>'}")


def normalize_url(database_url: str, kind: BackendKind) -> str:
    """Convert a database URL to its async driver form."""
    scheme, _, rest = database_url.partition("://")
    if kind is BackendKind.POSTGRES:
        return f"postgresql+asyncpg://{rest}"
    return f"sqlite+aiosqlite://{rest}"


class Storage:
    """Uniform query interface. Concrete subclasses bind it to a backend."""

    kind: BackendKind
    available = True

    async def query_all(
        self, sql: str, params: Sequence[Any] | None = None
    ) -> list[dict[str, Any]]:
        raise NotImplementedError

    async def query_one(
        self, sql: str, params: Sequence[Any] | None = None
    ) -> dict[str, Any] | None:
        raise NotImplementedError

    async def execute(
        self, sql: str, params: Sequence[Any] | None = None
    ) -> ExecuteResult:
        raise NotImplementedError

    async def run_in_transaction(self, statements: Sequence[Statement]) -> None:
        raise NotImplementedError

    async def ping(self) -> None:
        raise NotImplementedError

    async def describe(self) -> dict[str, Any]:
        raise NotImplementedError

    async def dispose(self) -> None:
        return None


class SQLAlchemyStorage(Storage):
    """Storage backed by an async SQLAlchemy engine."""

    # Query listing user tables; overridden per backend
    TABLES_SQL = ""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def query_all(
        self, sql: str, params: Sequence[Any] | None = None
    ) -> list[dict[str, Any]]:
        clause = bind(sql, params)
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(clause)
                return [dict(row._mapping) for row in result]
        except (SQLAlchemyError, OSError) as e:
            raise self._storage_error("query_failed", e) from e

    async def query_one(
        self, sql: str, params: Sequence[Any] | None = None
    ) -> dict[str, Any] | None:
        rows = await self.query_all(sql, params)
        return rows[0] if rows else None

    async def execute(
        self, sql: str, params: Sequence[Any] | None = None
    ) -> ExecuteResult:
        clause = bind(sql, params)
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(clause)
                return ExecuteResult(affected_count=max(result.rowcount or 0, 0))
        except (SQLAlchemyError, OSError) as e:
            raise self._storage_error("execute_failed", e) from e

    async def run_in_transaction(self, statements: Sequence[Statement]) -> None:
        """
        Apply every statement or none of them.

        On the first failing statement the transaction is rolled back and
        the failure is raised as ``StorageError`` chained to the driver error.
        """
        clauses = [bind(sql, params) for sql, params in statements]
        try:
            async with self.engine.begin() as conn:
                for clause in clauses:
                    await conn.execute(clause)
        except (SQLAlchemyError, OSError) as e:
            raise self._storage_error(
                "transaction_rolled_back", e, statements=len(clauses)
            ) from e

    async def ping(self) -> None:
        await self.query_one("SELECT 1 AS ok")

    async def describe(self) -> dict[str, Any]:
        """Database diagnostics: backend, connection status, tables and row counts."""
        info: dict[str, Any] = {
            "database_type": self.kind.value,
            "database_name": None,
            "connection_status": "connected",
            "tables": [],
        }
        try:
            info["database_name"] = await self._database_name()
            rows = await self.query_all(self.TABLES_SQL)
        except StorageError as e:
            info["connection_status"] = "disconnected"
            info["error"] = str(e)
            return info

        for row in rows:
            name = row["name"]
            if not TABLE_NAME_RE.match(name):
                continue
            count_row = await self.query_one(f'SELECT COUNT(*) AS count FROM "{name}"')
            info["tables"].append(
                {"name": name, "row_count": int(count_row["count"]) if count_row else 0}
            )
        return info

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def _database_name(self) -> str:
        raise NotImplementedError

    def _storage_error(self, event_name: str, error: Exception, **context) -> StorageError:
        logger.error(event_name, backend=self.kind.value, error=str(error), **context)
        unavailable = isinstance(error, OSError) or getattr(
            error, "connection_invalidated", False
        )
        return StorageError(f"Database error: {error}", unavailable=unavailable)


class PostgresStorage(SQLAlchemyStorage):
    """PostgreSQL through asyncpg."""

    kind = BackendKind.POSTGRES
    TABLES_SQL = """
        SELECT table_name AS name
        FROM information_schema.tables
        WHERE table_schema = 'public' AND table_type = 'BASE TABLE'
        ORDER BY table_name
    """

    @classmethod
    def from_url(
        cls,
        url: str,
        pool_size: int = 10,
        max_overflow: int = 20,
        ssl: bool = False,
        connect_timeout: float = 10.0,
        echo: bool = False,
    ) -> "PostgresStorage":
        connect_args: dict[str, Any] = {"timeout": connect_timeout}
        if ssl:
            connect_args["ssl"] = "require"
        engine = create_async_engine(
            url,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_recycle=300,
            connect_args=connect_args,
            echo=echo,
        )
        return cls(engine)

    async def _database_name(self) -> str:
        row = await self.query_one("SELECT current_database() AS name")
        return row["name"] if row else "postgres"


class SQLiteStorage(SQLAlchemyStorage):
    """SQLite through aiosqlite. Used for local development and tests."""

    kind = BackendKind.SQLITE
    TABLES_SQL = """
        SELECT name
        FROM sqlite_master
        WHERE type = 'table' AND name NOT LIKE 'sqlite_%'
        ORDER BY name
    """

    @classmethod
    def from_url(cls, url: str, echo: bool = False) -> "SQLiteStorage":
        engine = create_async_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return cls(engine)

    async def _database_name(self) -> str:
        return self.engine.url.database or ":memory:"


class UnavailableStorage(Storage):
    """
    Stand-in installed when no connection could be established.

    Every operation is rejected with a descriptive ``StorageError`` so the
    request reports the condition instead of the process failing at start-up.
    """

    available = False

    def __init__(self, reason: str, kind: BackendKind | None = None):
        self.reason = reason
        self.kind = kind

    def _reject(self) -> StorageError:
        return StorageError(f"Database unavailable: {self.reason}", unavailable=True)

    async def query_all(self, sql, params=None):
        raise self._reject()

    async def query_one(self, sql, params=None):
        raise self._reject()

    async def execute(self, sql, params=None):
        raise self._reject()

    async def run_in_transaction(self, statements):
        raise self._reject()

    async def ping(self) -> None:
        raise self._reject()

    async def describe(self) -> dict[str, Any]:
        return {
            "database_type": self.kind.value if self.kind else "unknown",
            "connection_status": "disconnected",
            "error": self.reason,
            "tables": [],
        }


def create_storage(
    database_url: str,
    pool_size: int = 10,
    max_overflow: int = 20,
    ssl: bool = False,
    connect_timeout: float = 10.0,
    echo: bool = False,
) -> SQLAlchemyStorage:
    """
    Select and construct the storage implementation for a URL.

    Raises:
        ConfigurationError: If the URL is unsupported or malformed
    """
    kind = detect_backend(database_url)
    url = normalize_url(database_url, kind)
    try:
        if kind is BackendKind.POSTGRES:
            return PostgresStorage.from_url(
                url,
                pool_size=pool_size,
                max_overflow=max_overflow,
                ssl=ssl,
                connect_timeout=connect_timeout,
                echo=echo,
            )
        return SQLiteStorage.from_url(url, echo=echo)
    except (ArgumentError, ImportError) as e:
        raise ConfigurationError(f"Invalid database configuration: {e}") from e


async def connect_storage(settings) -> Storage:
    """
    Build the storage handle for the configured database and check that it answers.

    Never raises: on any failure an ``UnavailableStorage`` carrying the
    reason is returned instead.
    """
    try:
        kind = detect_backend(settings.database_url)
        storage = create_storage(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            ssl=settings.db_ssl,
            connect_timeout=settings.db_connect_timeout,
            echo=settings.debug,
        )
    except ConfigurationError as e:
        logger.error("storage_misconfigured", error=str(e))
        return UnavailableStorage(str(e))

    try:
        await storage.ping()
    except StorageError as e:
        logger.error("storage_connect_failed", backend=kind.value, error=str(e))
        await storage.dispose()
        return UnavailableStorage(str(e), kind=kind)

    logger.info("storage_connected", backend=kind.value)
    return storage

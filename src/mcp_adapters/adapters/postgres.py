"""PostgreSQL adapter: pooled engines and a single leased connection.

:class:`PoolRegistry` caches one SQLAlchemy ``AsyncEngine`` (and so one
connection pool) per normalized connection URL. :class:`DatabaseConnection`
leases a connection from that registry; switching to another URL releases
the lease but keeps the old pool alive for reuse.

Growth of the registry is governed by an :class:`EvictionPolicy`. The
default keeps every pool until :meth:`PoolRegistry.dispose_all`;
:class:`LRUEviction` and :class:`TTLEviction` cap it.
"""

from __future__ import annotations

import logging
import re
import time
from collections import OrderedDict
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine

from mcp_adapters.core.errors import RemoteError
from mcp_adapters.core.secrets import mask_url_password, redact

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Mapping, Sequence

    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
    from sqlalchemy.sql.elements import TextClause

    from mcp_adapters.adapters.connections import ConnectionStore
    from mcp_adapters.config.schema import PostgresConfig

logger = logging.getLogger(__name__)

_POSITIONAL = re.compile(r"\$(\d+)")


def normalize_url(url: str) -> str:
    """Canonical form used as the pool cache key.

    Plain ``postgres://`` and ``postgresql://`` URLs get the asyncpg driver.
    """
    url = url.strip()
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix) :]
    return url


def engine_options(url: str, config: PostgresConfig | None = None) -> dict[str, Any]:
    """Pool keyword arguments for ``create_async_engine``."""
    options: dict[str, Any] = {}
    if url.startswith("sqlite"):
        if ":memory:" in url or url.rstrip("/").endswith(":"):
            # In-memory SQLite needs StaticPool so all queries share
            # the same connection (and thus the same in-memory DB).
            from sqlalchemy.pool import StaticPool

            options["poolclass"] = StaticPool
            options["connect_args"] = {"check_same_thread": False}
        else:
            from sqlalchemy.pool import NullPool

            options["poolclass"] = NullPool
        return options

    if config is not None:
        options["pool_size"] = config.pool_size
        options["max_overflow"] = config.max_overflow
        options["pool_timeout"] = config.pool_timeout
        options["pool_recycle"] = config.pool_recycle
    options["pool_pre_ping"] = True
    return options


def bind_params(sql: str, params: Sequence[Any] | Mapping[str, Any] | None) -> tuple[TextClause, dict[str, Any]]:
    """Build a text clause, accepting ``$1``-style positional parameters.

    Positional values are bound by name (``$1`` becomes ``:p1``) so the
    same SQL works on every SQLAlchemy dialect.
    """
    if params is None:
        return text(sql), {}
    if isinstance(params, dict):
        return text(sql), dict(params)
    bound = {f"p{i}": value for i, value in enumerate(params, 1)}
    return text(_POSITIONAL.sub(lambda m: f":p{m[1]}", sql)), bound


# ─── Pool registry ───────────────────────────────────────────


@dataclass(slots=True)
class PoolEntry:
    """A cached engine and its bookkeeping."""

    engine: AsyncEngine
    created_at: float
    last_used: float


class EvictionPolicy(Protocol):
    """Decides which cached pools to dispose."""

    def select_victims(self, entries: Mapping[str, PoolEntry], now: float) -> list[str]:
        """Return keys to evict; ``entries`` is ordered least recently used first."""
        ...


class NoEviction:
    """Keep every pool for the life of the process."""

    def select_victims(self, entries: Mapping[str, PoolEntry], now: float) -> list[str]:
        return []


class LRUEviction:
    """Keep at most ``max_pools`` pools, dropping the least recently used."""

    def __init__(self, max_pools: int) -> None:
        if max_pools < 1:
            msg = "max_pools must be at least 1"
            raise ValueError(msg)
        self.max_pools = max_pools

    def select_victims(self, entries: Mapping[str, PoolEntry], now: float) -> list[str]:
        excess = len(entries) - self.max_pools
        return list(entries)[:excess] if excess > 0 else []


class TTLEviction:
    """Drop pools idle for longer than ``idle_seconds``."""

    def __init__(self, idle_seconds: float) -> None:
        self.idle_seconds = idle_seconds

    def select_victims(self, entries: Mapping[str, PoolEntry], now: float) -> list[str]:
        return [key for key, e in entries.items() if now - e.last_used > self.idle_seconds]


def policy_from_config(config: PostgresConfig) -> EvictionPolicy:
    if config.max_pools:
        return LRUEviction(config.max_pools)
    if config.pool_idle_ttl:
        return TTLEviction(config.pool_idle_ttl)
    return NoEviction()


class PoolRegistry:
    """Cache of pooled engines keyed by normalized connection URL."""

    def __init__(
        self,
        config: PostgresConfig | None = None,
        *,
        policy: EvictionPolicy | None = None,
        engine_factory: Callable[..., AsyncEngine] = create_async_engine,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._policy = policy or (policy_from_config(config) if config else NoEviction())
        self._engine_factory = engine_factory
        self._clock = clock
        self._entries: OrderedDict[str, PoolEntry] = OrderedDict()

    async def acquire(self, url: str) -> AsyncEngine:
        """Return the engine for ``url``, creating it on first use."""
        key = normalize_url(url)
        now = self._clock()
        entry = self._entries.get(key)
        if entry is None:
            engine = self._engine_factory(key, **engine_options(key, self._config))
            entry = PoolEntry(engine=engine, created_at=now, last_used=now)
            self._entries[key] = entry
            logger.info("Created connection pool for %s", mask_url_password(key))
        else:
            entry.last_used = now
        self._entries.move_to_end(key)

        for victim in self._policy.select_victims(self._entries, now):
            if victim != key:
                logger.info("Evicting connection pool for %s", mask_url_password(victim))
                await self.discard(victim)
        return entry.engine

    def get(self, url: str) -> AsyncEngine | None:
        entry = self._entries.get(normalize_url(url))
        return entry.engine if entry else None

    async def discard(self, url: str) -> None:
        """Dispose and forget the pool for ``url`` (no-op when absent)."""
        entry = self._entries.pop(normalize_url(url), None)
        if entry is not None:
            await entry.engine.dispose()

    async def dispose_all(self) -> None:
        """Close every cached pool. Call on shutdown."""
        for key in list(self._entries):
            try:
                await self.discard(key)
            except Exception:
                logger.exception("Error closing pool for %s", mask_url_password(key))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, url: str) -> bool:
        return normalize_url(url) in self._entries


# ─── Leased connection ───────────────────────────────────────


class DatabaseConnection:
    """One leased connection at a time, drawn from a :class:`PoolRegistry`.

    Not safe for concurrent use: two invocations switching connections on
    the same instance can race. Give each concurrent caller its own
    instance over the shared registry.
    """

    def __init__(
        self,
        store: ConnectionStore,
        pools: PoolRegistry,
        *,
        statement_timeout_ms: int | None = None,
    ) -> None:
        self.store = store
        self.pools = pools
        self.statement_timeout_ms = statement_timeout_ms
        self._url = ""
        self._conn: AsyncConnection | None = None
        self._in_transaction = False

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    @property
    def engine(self) -> AsyncEngine | None:
        return self.pools.get(self._url) if self._url else None

    @property
    def dialect(self) -> str:
        engine = self.engine
        return engine.dialect.name if engine is not None else ""

    @property
    def connection_info(self) -> str:
        """Current URL with the password masked."""
        return mask_url_password(self._url) if self._url else "Not connected"

    async def connect(self, name_or_url: str | None = None) -> None:
        """Lease a connection for a named connection or URL.

        Reuses the current lease when the URL is unchanged; otherwise the
        current lease is released (its pool stays cached) first.

        Raises:
            NotFoundError: Unknown connection name and no default.
            RemoteError: The database could not be reached.
        """
        url = normalize_url(self.store.resolve(name_or_url))
        if self._conn is not None and self._url == url:
            return
        if self._conn is not None:
            await self.disconnect()

        engine = await self.pools.acquire(url)
        try:
            conn = await engine.connect()
        except (SQLAlchemyError, OSError) as e:
            await self.pools.discard(url)
            msg = f"Failed to connect to database: {redact(str(e))}"
            raise RemoteError(msg) from e

        try:
            if self.statement_timeout_ms and engine.dialect.name == "postgresql":
                await conn.execute(text(f"SET statement_timeout = {int(self.statement_timeout_ms)}"))
            await conn.execute(text("SELECT 1"))
            await conn.commit()
        except (SQLAlchemyError, OSError) as e:
            await conn.close()
            await self.pools.discard(url)
            msg = f"Failed to connect to database: {redact(str(e))}"
            raise RemoteError(msg) from e

        self._conn = conn
        self._url = url

    async def disconnect(self) -> None:
        """Release the leased connection. The pool is kept for reuse."""
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await conn.close()
        self._url = ""
        self._in_transaction = False

    @asynccontextmanager
    async def session(self, name_or_url: str | None = None) -> AsyncIterator[DatabaseConnection]:
        """Connect for the duration of a ``with`` block."""
        await self.connect(name_or_url)
        try:
            yield self
        finally:
            await self.disconnect()

    def _require(self) -> AsyncConnection:
        if self._conn is None:
            msg = "Not connected to database"
            raise RemoteError(msg)
        return self._conn

    async def query(
        self,
        sql: str,
        params: Sequence[Any] | Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Run a statement and return its rows as dicts."""
        conn = self._require()
        clause, bound = bind_params(sql, params)
        try:
            result = await conn.execute(clause, bound)
            rows = [dict(row._mapping) for row in result] if result.returns_rows else []
            if not self._in_transaction:
                await conn.commit()
        except SQLAlchemyError as e:
            if not self._in_transaction:
                await conn.rollback()
            msg = f"Query failed: {redact(str(getattr(e, 'orig', None) or e))}"
            raise RemoteError(msg) from e
        return rows

    async def query_one(
        self, sql: str, params: Sequence[Any] | Mapping[str, Any] | None = None
    ) -> dict[str, Any] | None:
        rows = await self.query(sql, params)
        return rows[0] if rows else None

    async def query_value(
        self, sql: str, params: Sequence[Any] | Mapping[str, Any] | None = None
    ) -> Any:
        row = await self.query_one(sql, params)
        return next(iter(row.values())) if row else None

    async def execute(
        self, sql: str, params: Sequence[Any] | Mapping[str, Any] | None = None
    ) -> int:
        """Run a DDL/DML statement and return the affected row count."""
        conn = self._require()
        clause, bound = bind_params(sql, params)
        try:
            result = await conn.execute(clause, bound)
            if not self._in_transaction:
                await conn.commit()
        except SQLAlchemyError as e:
            if not self._in_transaction:
                await conn.rollback()
            msg = f"Statement failed: {redact(str(getattr(e, 'orig', None) or e))}"
            raise RemoteError(msg) from e
        return max(result.rowcount, 0)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[DatabaseConnection]:
        """Group statements into one transaction; rolled back on error."""
        conn = self._require()
        if conn.in_transaction():
            await conn.commit()
        self._in_transaction = True
        try:
            async with conn.begin():
                yield self
        except SQLAlchemyError as e:
            msg = f"Transaction failed: {redact(str(getattr(e, 'orig', None) or e))}"
            raise RemoteError(msg) from e
        finally:
            self._in_transaction = False

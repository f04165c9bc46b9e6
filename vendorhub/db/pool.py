"""
Connection pool manager.

One ConnectionPool is created at process start and handed to every consumer;
there is no module-level engine.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import event, exc as sa_exc, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from vendorhub.core.errors import PoolExhaustedError, StoreConnectionError

from .config import Settings

logger = logging.getLogger(__name__)

POOL_EVENTS = ("connect", "error", "remove")

PoolListener = Callable[..., None]


class PooledConnection:
    """
    A connection borrowed from the pool for the lifetime of one unit of work.

    release() is idempotent so a second call cannot return the same physical
    connection to the pool twice.
    """

    def __init__(self, connection: AsyncConnection, pool: "ConnectionPool") -> None:
        self.connection = connection
        self._pool = pool
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    async def release(self) -> None:
        """Return the connection to the pool (no-op when already released)."""
        if self._released:
            logger.debug("Ignoring repeated release of pooled connection")
            return
        self._released = True
        await self.connection.close()

    async def invalidate(self, exception: Optional[BaseException] = None) -> None:
        """Discard the physical connection instead of returning it for reuse."""
        await self.connection.invalidate(exception)


class ConnectionPool:
    """
    Owns the AsyncEngine and its pool of physical connections.

    Exposes acquire/release, observability hooks for connect/error/remove events,
    and an explicit lifecycle (ping at startup, dispose at shutdown).
    """

    def __init__(
        self,
        url: str,
        *,
        pool_size: int = 10,
        max_overflow: int = 5,
        pool_timeout: float = 30.0,
        echo: bool = False,
    ) -> None:
        self._url = make_url(url)
        self._pool_timeout = pool_timeout
        self._listeners: Dict[str, List[PoolListener]] = defaultdict(list)
        self._engine: Optional[AsyncEngine] = create_async_engine(
            url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_pre_ping=True,
        )
        self._install_pool_events(self._engine)

    # PUBLIC_INTERFACE
    @classmethod
    def from_settings(cls, settings: Settings) -> "ConnectionPool":
        """Build the pool from database settings; raises ConfigurationError if unset."""
        return cls(
            settings.async_database_url,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            echo=settings.SQL_ECHO,
        )

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise StoreConnectionError("connection pool has been disposed")
        return self._engine

    @property
    def target(self) -> str:
        """host:port/database for diagnostics; never includes credentials."""
        host = self._url.host or "local"
        port = f":{self._url.port}" if self._url.port else ""
        return f"{host}{port}/{self._url.database or ''}"

    # PUBLIC_INTERFACE
    def add_listener(self, event_name: str, callback: PoolListener) -> None:
        """
        Subscribe to a pool event.

        connect(dbapi_connection), error(dbapi_connection, exception),
        remove(dbapi_connection).
        """
        if event_name not in POOL_EVENTS:
            raise ValueError(f"unknown pool event '{event_name}', expected one of {POOL_EVENTS}")
        self._listeners[event_name].append(callback)

    # PUBLIC_INTERFACE
    async def acquire(self) -> PooledConnection:
        """
        Borrow a connection, waiting at most pool_timeout seconds.

        Raises:
            PoolExhaustedError: no connection became free in time.
            StoreConnectionError: the database could not be reached.
        """
        engine = self.engine
        try:
            connection = await engine.connect()
        except sa_exc.TimeoutError as exc:
            logger.error(
                "Connection pool exhausted target=%s timeout=%.1fs status=%s",
                self.target,
                self._pool_timeout,
                self.status(),
            )
            raise PoolExhaustedError(
                f"no database connection available within {self._pool_timeout:.1f}s"
            ) from exc
        except (sa_exc.DBAPIError, OSError) as exc:
            logger.error(
                "Database connection failed target=%s error=%s",
                self.target,
                exc.__class__.__name__,
            )
            raise StoreConnectionError("database connection failed") from exc
        return PooledConnection(connection, self)

    # PUBLIC_INTERFACE
    async def ping(self) -> None:
        """Startup check: borrow a connection and run a trivial query."""
        pooled = await self.acquire()
        try:
            await pooled.connection.execute(text("SELECT 1"))
            logger.info("Database connection successful target=%s", self.target)
        except sa_exc.DBAPIError as exc:
            logger.error("Database check failed target=%s error=%s", self.target, exc.__class__.__name__)
            raise StoreConnectionError("database check failed") from exc
        finally:
            await pooled.release()

    def status(self) -> Dict[str, Any]:
        """Pool counters where the pool implementation exposes them."""
        if self._engine is None:
            return {"disposed": True}
        pool = self._engine.pool
        stats: Dict[str, Any] = {}
        for name in ("size", "checkedin", "checkedout", "overflow"):
            fn = getattr(pool, name, None)
            if callable(fn):
                stats[name] = fn()
        return stats

    # PUBLIC_INTERFACE
    async def dispose(self) -> None:
        """Close every pooled connection; the pool cannot be used afterwards."""
        if self._engine is None:
            return
        engine, self._engine = self._engine, None
        await engine.dispose()
        logger.info("Connection pool disposed target=%s", self.target)

    def _emit(self, event_name: str, *args: Any) -> None:
        for callback in self._listeners[event_name]:
            try:
                callback(*args)
            except Exception:
                logger.exception("Pool %s listener failed", event_name)

    def _install_pool_events(self, engine: AsyncEngine) -> None:
        target = self.target

        @event.listens_for(engine.sync_engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            logger.info("New connection added to pool target=%s", target)
            self._emit("connect", dbapi_connection)

        @event.listens_for(engine.sync_engine, "invalidate")
        def _on_invalidate(dbapi_connection, connection_record, exception):
            logger.error(
                "Pooled connection invalidated target=%s error=%s",
                target,
                exception.__class__.__name__ if exception is not None else None,
            )
            self._emit("error", dbapi_connection, exception)

        @event.listens_for(engine.sync_engine, "close")
        def _on_close(dbapi_connection, connection_record):
            logger.info("Connection removed from pool target=%s", target)
            self._emit("remove", dbapi_connection)

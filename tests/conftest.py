"""Shared fixtures: contexts, an on-disk SQLite pool and both backing stores."""
from __future__ import annotations

from typing import Dict, Optional

import pytest
from sqlalchemy import event

from vendorhub.db.base import Base
from vendorhub.db import models  # noqa: F401  (registers every table on Base.metadata)
from vendorhub.db.context import SecurityContext
from vendorhub.db.pool import ConnectionPool
from vendorhub.db.scoped import ScopedExecutor
from vendorhub.storage.memory import MemoryStorage
from vendorhub.storage.relational import RelationalStorage

TENANT_A = "vendor-a"
TENANT_B = "vendor-b"


class SessionSettings:
    """
    PostgreSQL GUC semantics for one SQLite connection.

    Local values (set_config(..., true)) shadow session values until the
    transaction ends; session values survive commits.
    """

    def __init__(self) -> None:
        self.session: Dict[str, str] = {}
        self.local: Dict[str, str] = {}

    def set_config(self, name: str, value: Optional[str], is_local) -> str:
        value = value or ""
        if is_local:
            self.local[name] = value
        else:
            self.session[name] = value
            self.local.pop(name, None)
        return value

    def current_setting(self, name: str, missing_ok) -> Optional[str]:
        return self.local.get(name, self.session.get(name))

    def end_transaction(self) -> None:
        self.local.clear()


# keyed by id() of the DBAPI connection; the aiosqlite adapter takes no attributes
_SETTINGS: Dict[int, SessionSettings] = {}


def _install_session_functions(dbapi_connection) -> None:
    """Emulate PostgreSQL set_config/current_setting with per-connection state."""
    settings = _SETTINGS[id(dbapi_connection)] = SessionSettings()
    dbapi_connection.create_function("set_config", 3, settings.set_config)
    dbapi_connection.create_function("current_setting", 2, settings.current_setting)


def _end_transaction(dbapi_connection) -> None:
    settings = _SETTINGS.get(id(dbapi_connection))
    if settings is not None:
        settings.end_transaction()


def make_sqlite_pool(tmp_path, **options) -> ConnectionPool:
    pool = ConnectionPool(f"sqlite+aiosqlite:///{tmp_path / 'vendorhub.db'}", **options)
    pool.add_listener("connect", _install_session_functions)
    sync_engine = pool.engine.sync_engine

    @event.listens_for(sync_engine, "commit")
    def _on_commit(conn):
        _end_transaction(conn.connection.dbapi_connection)

    @event.listens_for(sync_engine, "rollback")
    def _on_rollback(conn):
        _end_transaction(conn.connection.dbapi_connection)

    @event.listens_for(sync_engine, "reset")
    def _on_reset(dbapi_connection, connection_record, reset_state):
        _end_transaction(dbapi_connection)

    return pool


async def create_schema(pool: ConnectionPool) -> None:
    async with pool.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def tenant_a() -> SecurityContext:
    return SecurityContext.for_tenant(TENANT_A, actor_id="user-a")


@pytest.fixture
def tenant_b() -> SecurityContext:
    return SecurityContext.for_tenant(TENANT_B, actor_id="user-b")


@pytest.fixture
def admin() -> SecurityContext:
    return SecurityContext.for_admin(actor_id="root")


@pytest.fixture
async def sqlite_pool(tmp_path):
    pool = make_sqlite_pool(tmp_path, pool_size=2, max_overflow=0, pool_timeout=1.0)
    await create_schema(pool)
    yield pool
    await pool.dispose()


@pytest.fixture
def executor(sqlite_pool) -> ScopedExecutor:
    return ScopedExecutor(sqlite_pool)


@pytest.fixture
def database_storage(executor) -> RelationalStorage:
    return RelationalStorage(executor)


@pytest.fixture(params=["memory", "database"])
async def storage(request, tmp_path):
    """Every contract test runs against both backing stores."""
    if request.param == "memory":
        yield MemoryStorage()
        return
    pool = make_sqlite_pool(tmp_path, pool_size=2, max_overflow=0, pool_timeout=1.0)
    await create_schema(pool)
    yield RelationalStorage(ScopedExecutor(pool))
    await pool.dispose()


@pytest.fixture
async def pool_factory(tmp_path):
    """Build extra SQLite pools with custom sizing; all are disposed after the test."""
    pools = []

    def build(**options) -> ConnectionPool:
        pool = make_sqlite_pool(tmp_path, **options)
        pools.append(pool)
        return pool

    yield build
    for pool in pools:
        await pool.dispose()

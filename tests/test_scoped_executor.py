"""Tests for ScopedExecutor.with_context: stamping, atomicity and cleanup."""
from __future__ import annotations

import logging
from typing import List

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from vendorhub.core.errors import StoreConnectionError, TransactionError
from vendorhub.core.logging import role_var, tenant_id_var
from vendorhub.db.context import SecurityContext, read_session_context
from vendorhub.db.models import Customer
from vendorhub.db.pool import PooledConnection
from vendorhub.db.scoped import ScopedExecutor
from vendorhub.schemas.common import utcnow


def _customer(tenant_id: str, name: str) -> Customer:
    now = utcnow()
    return Customer(
        id=f"cus-{name}",
        tenant_id=tenant_id,
        name=name,
        phone="555",
        customer_type="walk-in",
        status="active",
        created_at=now,
        updated_at=now,
    )


class FakeConnection:
    """Records the calls the executor makes; failures are switched on per test."""

    def __init__(self, *, fail_commit=False, fail_rollback=False, fail_reset=False, fail_close=False) -> None:
        self.calls: List[str] = []
        self.fail_commit = fail_commit
        self.fail_rollback = fail_rollback
        self.fail_reset = fail_reset
        self.fail_close = fail_close

    async def begin(self):
        self.calls.append("begin")

    async def execute(self, statement, params=None):
        sql = str(statement)
        if "'', false" in sql:
            self.calls.append("reset")
            if self.fail_reset:
                raise RuntimeError("connection unusable")
        else:
            self.calls.append("stamp")

    async def commit(self):
        self.calls.append("commit")
        if self.fail_commit and self.calls.count("commit") == 1:
            raise RuntimeError("commit lost")

    async def rollback(self):
        self.calls.append("rollback")
        if self.fail_rollback:
            raise RuntimeError("rollback failed")

    async def invalidate(self, exception=None):
        self.calls.append("invalidate")

    async def close(self):
        self.calls.append("close")
        if self.fail_close:
            raise RuntimeError("close failed")


class FakeSession:
    async def flush(self):
        pass

    async def close(self):
        pass


class FakePool:
    target = "fake:5432/test"

    def __init__(self, connection: FakeConnection = None, acquire_error: Exception = None) -> None:
        self.connection = connection
        self.acquire_error = acquire_error

    async def acquire(self) -> PooledConnection:
        if self.acquire_error is not None:
            raise self.acquire_error
        return PooledConnection(self.connection, self)


def _executor(connection: FakeConnection) -> ScopedExecutor:
    return ScopedExecutor(FakePool(connection), session_factory=lambda conn: FakeSession())


CTX = SecurityContext.for_tenant("v1", actor_id="u1")


class TestWithContextLifecycle:
    async def test_success_commits_then_clears(self):
        conn = FakeConnection()

        async def work(session):
            return "done"

        assert await _executor(conn).with_context(CTX, work) == "done"
        assert conn.calls == ["begin", "stamp", "commit", "reset", "commit", "close"]

    async def test_failure_rolls_back_and_propagates(self):
        conn = FakeConnection()

        async def work(session):
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await _executor(conn).with_context(CTX, work)
        assert conn.calls == ["begin", "stamp", "rollback", "reset", "commit", "close"]

    async def test_rollback_failure_keeps_original_error(self, caplog):
        conn = FakeConnection(fail_rollback=True)

        async def work(session):
            raise ValueError("boom")

        with caplog.at_level(logging.ERROR):
            with pytest.raises(ValueError, match="boom"):
                await _executor(conn).with_context(CTX, work)
        assert "Rollback failed" in caplog.text
        assert conn.calls[-3:] == ["reset", "commit", "close"]

    async def test_commit_failure_raises_transaction_error(self):
        conn = FakeConnection(fail_commit=True)

        async def work(session):
            return "unreachable"

        with pytest.raises(TransactionError) as err:
            await _executor(conn).with_context(CTX, work)
        assert isinstance(err.value.cause, RuntimeError)
        assert str(err.value.cause) == "commit lost"
        assert err.value.retryable
        assert conn.calls == ["begin", "stamp", "commit", "rollback", "reset", "commit", "close"]

    async def test_uncleared_connection_is_discarded(self, caplog):
        conn = FakeConnection(fail_reset=True)

        async def work(session):
            return 42

        with caplog.at_level(logging.CRITICAL):
            assert await _executor(conn).with_context(CTX, work) == 42
        assert "invalidate" in conn.calls
        assert conn.calls[-1] == "close"
        assert "Failed to clear session variables" in caplog.text

    async def test_dropped_connection_maps_to_store_connection_error(self):
        conn = FakeConnection()

        async def work(session):
            raise OperationalError("SELECT 1", {}, Exception("server closed"), connection_invalidated=True)

        with pytest.raises(StoreConnectionError):
            await _executor(conn).with_context(CTX, work)
        assert "rollback" in conn.calls

    async def test_acquire_failure_opens_no_transaction(self):
        pool = FakePool(acquire_error=StoreConnectionError("database connection failed"))
        called = []

        async def work(session):
            called.append(True)

        with pytest.raises(StoreConnectionError):
            await ScopedExecutor(pool).with_context(CTX, work)
        assert called == []

    async def test_logging_context_is_set_only_during_unit_of_work(self):
        seen = {}

        async def work(session):
            seen["tenant"] = tenant_id_var.get()
            seen["role"] = role_var.get()

        await _executor(FakeConnection()).with_context(CTX, work)
        assert seen == {"tenant": "v1", "role": "tenant"}
        assert tenant_id_var.get() is None
        assert role_var.get() is None

    async def test_logging_context_is_restored_when_release_fails(self):
        async def work(session):
            return None

        with pytest.raises(RuntimeError, match="close failed"):
            await _executor(FakeConnection(fail_close=True)).with_context(CTX, work)
        assert tenant_id_var.get() is None
        assert role_var.get() is None


class TestWithContextOnDatabase:
    async def test_variables_visible_inside_and_cleared_after(self, pool_factory):
        pool = pool_factory(pool_size=1, max_overflow=0)
        executor = ScopedExecutor(pool)

        async def work(session):
            return await read_session_context(await session.connection())

        inside = await executor.with_context(CTX, work)
        assert inside == {"tenant_id": "v1", "role": "tenant", "actor_id": "u1"}

        # pool_size=1: the next borrower gets the same physical connection
        pooled = await pool.acquire()
        try:
            assert await read_session_context(pooled.connection) == {
                "tenant_id": None,
                "role": None,
                "actor_id": None,
            }
        finally:
            await pooled.release()

    async def test_cleared_after_failure_too(self, pool_factory):
        pool = pool_factory(pool_size=1, max_overflow=0)
        executor = ScopedExecutor(pool)

        async def work(session):
            raise ValueError("boom")

        with pytest.raises(ValueError):
            await executor.with_context(SecurityContext.for_admin("root"), work)

        pooled = await pool.acquire()
        try:
            assert (await read_session_context(pooled.connection))["role"] is None
        finally:
            await pooled.release()

    async def test_all_or_nothing(self, executor):
        async def failing(session):
            session.add(_customer("v1", "first"))
            await session.flush()
            session.add(_customer("v1", "second"))
            await session.flush()
            raise ValueError("abort after two inserts")

        with pytest.raises(ValueError):
            await executor.with_context(CTX, failing)

        async def count(session):
            return (await session.execute(select(func.count()).select_from(Customer))).scalar_one()

        assert await executor.with_context(CTX, count) == 0

    async def test_commit_persists_every_change(self, executor):
        async def insert(session):
            session.add_all([_customer("v1", "a"), _customer("v1", "b")])

        await executor.with_context(CTX, insert)

        async def names(session):
            return sorted((await session.execute(select(Customer.name))).scalars())

        assert await executor.with_context(CTX, names) == ["a", "b"]

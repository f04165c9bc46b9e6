"""
Scoped execution: run one unit of work on a dedicated connection stamped with a
security context.

    acquire -> begin -> stamp -> unit of work -> commit | rollback -> clear -> release

Clearing always runs, whatever happened before it. A pooled connection that
still carries a tenant stamp leaks that tenant's rows to the next borrower, so a
connection that cannot be cleared is invalidated instead of being reused.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy import exc as sa_exc
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession

from vendorhub.core.errors import StoreConnectionError, TransactionError
from vendorhub.core.logging import role_var, tenant_id_var

from .context import SecurityContext, reset_session_context, stamp_session_context
from .pool import ConnectionPool, PooledConnection

logger = logging.getLogger(__name__)

T = TypeVar("T")

UnitOfWork = Callable[[AsyncSession], Awaitable[T]]
SessionFactory = Callable[[AsyncConnection], AsyncSession]


def _default_session_factory(connection: AsyncConnection) -> AsyncSession:
    # rollback_only: session.commit() inside a unit of work only flushes; the
    # executor owns the outer transaction.
    return AsyncSession(
        bind=connection,
        expire_on_commit=False,
        join_transaction_mode="rollback_only",
    )


def _is_disconnect(exc: BaseException) -> bool:
    return isinstance(exc, sa_exc.DBAPIError) and bool(exc.connection_invalidated)


class ScopedExecutor:
    """Runs units of work under a SecurityContext. Shared by every relational store."""

    def __init__(
        self,
        pool: ConnectionPool,
        session_factory: Optional[SessionFactory] = None,
    ) -> None:
        self._pool = pool
        self._session_factory = session_factory or _default_session_factory

    @property
    def pool(self) -> ConnectionPool:
        return self._pool

    # PUBLIC_INTERFACE
    async def with_context(self, context: SecurityContext, unit_of_work: UnitOfWork[T]) -> T:
        """
        Execute `unit_of_work` inside one transaction stamped with `context`.

        Returns:
            Whatever the unit of work returns, after a successful commit.
        Raises:
            StoreConnectionError: acquisition failed (no transaction was opened) or the
                connection dropped mid-way.
            TransactionError: commit failed; `cause` carries the commit failure.
            Exception: any error raised by the unit of work, after rollback.
        """
        pooled = await self._pool.acquire()
        tenant_token = tenant_id_var.set(context.tenant_id)
        role_token = role_var.set(context.role.value)
        try:
            return await self._run_transaction(pooled.connection, context, unit_of_work)
        finally:
            try:
                try:
                    await self._clear(pooled)
                finally:
                    await pooled.release()
            finally:
                role_var.reset(role_token)
                tenant_id_var.reset(tenant_token)

    async def _run_transaction(
        self,
        connection: AsyncConnection,
        context: SecurityContext,
        unit_of_work: UnitOfWork[T],
    ) -> T:
        try:
            await connection.begin()
            await stamp_session_context(connection, context)
            session = self._session_factory(connection)
            try:
                result = await unit_of_work(session)
                await session.flush()
            finally:
                await session.close()
        except BaseException as exc:
            await self._rollback(connection, exc)
            if _is_disconnect(exc):
                raise StoreConnectionError("database connection lost during unit of work") from exc
            raise

        try:
            await connection.commit()
        except BaseException as exc:
            await self._rollback(connection, exc)
            if _is_disconnect(exc):
                raise StoreConnectionError("database connection lost during commit") from exc
            raise TransactionError("commit failed", cause=exc) from exc
        return result

    async def _rollback(self, connection: AsyncConnection, original: BaseException) -> None:
        """Roll back; a rollback failure is logged and never replaces `original`."""
        try:
            await connection.rollback()
        except Exception:
            logger.error(
                "Rollback failed after %s; re-raising the original error",
                original.__class__.__name__,
                exc_info=True,
            )

    async def _clear(self, pooled: PooledConnection) -> None:
        try:
            await reset_session_context(pooled.connection)
        except Exception:
            logger.critical(
                "Failed to clear session variables; discarding connection target=%s",
                self._pool.target,
                exc_info=True,
            )
            try:
                await pooled.invalidate()
            except Exception:
                logger.exception("Failed to invalidate uncleared connection")

"""
Repository layer for data access.

Repositories encapsulate SQLAlchemy queries for each domain area. They run on
the AsyncSession handed to a unit of work by ScopedExecutor.with_context, so the
connection is already stamped for row-level security. Tenant-scoped
repositories also add the equivalent WHERE clause themselves, which keeps
isolation intact on databases without row-level security.
"""
from __future__ import annotations

from typing import Any, List, Optional, Sequence, Tuple, Type

from sqlalchemy import ColumnElement, Executable, Select, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from vendorhub.db.context import SecurityContext
from vendorhub.storage.base import filter_equalities


class BaseRepository:
    """Base class for repositories providing common helpers."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def execute(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute a SQLAlchemy statement."""
        return await self.session.execute(statement, params or {})

    async def scalars(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return scalars."""
        result = await self.execute(statement, params)
        return result.scalars()

    async def scalar_one_or_none(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return a single scalar or None."""
        result = await self.execute(statement, params)
        return result.scalar_one_or_none()

    async def add(self, entity: Any) -> None:
        """Add a single entity to session and flush it."""
        self.session.add(entity)
        await self.session.flush()

    async def remove(self, entity: Any) -> None:
        """Delete a single entity and flush."""
        await self.session.delete(entity)
        await self.session.flush()


class TenantScopedRepository(BaseRepository):
    """
    Generic queries over one tenant-owned model.

    `owner_column` identifies the owning tenant; `visibility` mirrors the row
    policy for the given context (None means no restriction, i.e. admin).
    """

    def __init__(
        self,
        session: AsyncSession,
        model: Type[Any],
        *,
        owner_field: str = "tenant_id",
        search_fields: Sequence[str] = (),
        date_field: str = "created_at",
    ) -> None:
        super().__init__(session)
        self.model = model
        self.owner_field = owner_field
        self.search_fields = tuple(search_fields)
        self.date_field = date_field

    @property
    def owner_column(self):
        return getattr(self.model, self.owner_field)

    def visibility(self, context: SecurityContext) -> Optional[ColumnElement[bool]]:
        if context.is_admin:
            return None
        # A tenant context without a tenant id matches no rows.
        return self.owner_column == (context.tenant_id or "")

    def scoped(self, context: SecurityContext) -> Select[Tuple[Any]]:
        stmt = select(self.model)
        clause = self.visibility(context)
        if clause is not None:
            stmt = stmt.where(clause)
        return stmt

    def apply_filters(self, stmt: Select[Tuple[Any]], filters: Any) -> Select[Tuple[Any]]:
        """Translate a filter model into WHERE clauses (same semantics as the in-memory match)."""
        if filters is None:
            return stmt
        for name, value in filter_equalities(filters).items():
            stmt = stmt.where(getattr(self.model, name) == value)
        search = getattr(filters, "search", None)
        if search and self.search_fields:
            like = f"%{search}%"
            stmt = stmt.where(or_(*(getattr(self.model, f).ilike(like) for f in self.search_fields)))
        date_column = getattr(self.model, self.date_field)
        if getattr(filters, "date_from", None) is not None:
            stmt = stmt.where(date_column >= filters.date_from)
        if getattr(filters, "date_to", None) is not None:
            stmt = stmt.where(date_column <= filters.date_to)
        return stmt

    def newest_first(self, stmt: Select[Tuple[Any]]) -> Select[Tuple[Any]]:
        return stmt.order_by(self.model.created_at.desc(), self.model.id.desc())

    async def get(self, context: SecurityContext, entity_id: str, *, for_update: bool = False) -> Optional[Any]:
        stmt = self.scoped(context).where(self.model.id == entity_id)
        if for_update:
            stmt = stmt.with_for_update()
        return await self.scalar_one_or_none(stmt)

    async def list_owned_by(self, context: SecurityContext, owners: Sequence[str], filters: Any = None) -> List[Any]:
        stmt = self.scoped(context).where(self.owner_column.in_(list(owners)))
        stmt = self.newest_first(self.apply_filters(stmt, filters))
        return list(await self.scalars(stmt))

    async def list_visible(self, context: SecurityContext, filters: Any = None) -> List[Any]:
        stmt = self.newest_first(self.apply_filters(self.scoped(context), filters))
        return list(await self.scalars(stmt))

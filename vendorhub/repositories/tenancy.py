from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import ColumnElement, or_
from sqlalchemy.ext.asyncio import AsyncSession

from vendorhub.db.context import SecurityContext
from vendorhub.db.models.tenancy import Category, Vendor

from .base import TenantScopedRepository


class VendorRepository(TenantScopedRepository):
    """Vendors: a tenant sees exactly its own row (id == tenant id)."""

    def __init__(self, session: AsyncSession, **options: Any) -> None:
        super().__init__(session, Vendor, owner_field="id", **options)


class CategoryRepository(TenantScopedRepository):
    """Categories: global rows plus the ones the tenant authored."""

    def __init__(self, session: AsyncSession, **options: Any) -> None:
        super().__init__(session, Category, owner_field="created_by", **options)

    def visibility(self, context: SecurityContext) -> Optional[ColumnElement[bool]]:
        if context.is_admin:
            return None
        return or_(Category.is_global.is_(True), Category.created_by == (context.tenant_id or ""))

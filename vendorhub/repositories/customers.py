from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from vendorhub.db.models.customers import Customer, Lead

from .base import TenantScopedRepository


class CustomerRepository(TenantScopedRepository):
    """Repository for customers; all queries are tenant-scoped."""

    def __init__(self, session: AsyncSession, **options: Any) -> None:
        super().__init__(session, Customer, **options)


class LeadRepository(TenantScopedRepository):
    """Repository for leads."""

    def __init__(self, session: AsyncSession, **options: Any) -> None:
        super().__init__(session, Lead, **options)

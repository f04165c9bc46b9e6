from __future__ import annotations

from typing import Any, List

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from vendorhub.db.context import SecurityContext
from vendorhub.db.models.finance import Expense, LedgerTransaction, Supplier, SupplierPayment

from .base import TenantScopedRepository


class SupplierRepository(TenantScopedRepository):
    def __init__(self, session: AsyncSession, **options: Any) -> None:
        super().__init__(session, Supplier, **options)


class SupplierPaymentRepository(TenantScopedRepository):
    """Supplier payments; balance bookkeeping lives in the store."""

    def __init__(self, session: AsyncSession, **options: Any) -> None:
        super().__init__(session, SupplierPayment, **options)

    async def delete_for_supplier(self, context: SecurityContext, supplier_id: str) -> int:
        stmt = delete(SupplierPayment).where(SupplierPayment.supplier_id == supplier_id)
        clause = self.visibility(context)
        if clause is not None:
            stmt = stmt.where(clause)
        result = await self.execute(stmt)
        return result.rowcount or 0


class ExpenseRepository(TenantScopedRepository):
    def __init__(self, session: AsyncSession, **options: Any) -> None:
        super().__init__(session, Expense, **options)


class LedgerRepository(TenantScopedRepository):
    """Ledger entries."""

    def __init__(self, session: AsyncSession, **options: Any) -> None:
        super().__init__(session, LedgerTransaction, **options)

    async def list_for_reference(
        self, context: SecurityContext, reference_type: str, reference_id: str
    ) -> List[LedgerTransaction]:
        stmt = self.scoped(context).where(
            LedgerTransaction.reference_type == reference_type,
            LedgerTransaction.reference_id == reference_id,
        )
        return list(await self.scalars(stmt))

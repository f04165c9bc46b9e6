from __future__ import annotations

from typing import Any, List

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from vendorhub.db.context import SecurityContext
from vendorhub.db.models.inventory import Product, StockMovement

from .base import TenantScopedRepository


class ProductRepository(TenantScopedRepository):
    """Repository for products. Stock updates lock the product row (get(..., for_update=True))."""

    def __init__(self, session: AsyncSession, **options: Any) -> None:
        super().__init__(session, Product, **options)


class StockMovementRepository(TenantScopedRepository):
    """Repository for stock movements."""

    def __init__(self, session: AsyncSession, **options: Any) -> None:
        super().__init__(session, StockMovement, **options)

    async def list_for_product(self, context: SecurityContext, product_id: str) -> List[StockMovement]:
        stmt = self.newest_first(self.scoped(context).where(StockMovement.product_id == product_id))
        return list(await self.scalars(stmt))

    async def delete_for_product(self, context: SecurityContext, product_id: str) -> None:
        stmt = delete(StockMovement).where(StockMovement.product_id == product_id)
        clause = self.visibility(context)
        if clause is not None:
            stmt = stmt.where(clause)
        await self.execute(stmt)

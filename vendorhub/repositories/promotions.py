from __future__ import annotations

from typing import Any, List, Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from vendorhub.db.context import SecurityContext
from vendorhub.db.models.promotions import Coupon, CouponUsage

from .base import TenantScopedRepository


class CouponRepository(TenantScopedRepository):
    """Repository for coupons."""

    def __init__(self, session: AsyncSession, **options: Any) -> None:
        super().__init__(session, Coupon, **options)

    async def get_by_code(self, context: SecurityContext, code: str) -> Optional[Coupon]:
        stmt = self.scoped(context).where(Coupon.code == code)
        return await self.scalar_one_or_none(stmt)


class CouponUsageRepository(TenantScopedRepository):
    """Repository for coupon usages."""

    def __init__(self, session: AsyncSession, **options: Any) -> None:
        super().__init__(session, CouponUsage, **options)

    async def list_for_coupon(self, context: SecurityContext, coupon_id: str) -> List[CouponUsage]:
        stmt = self.newest_first(self.scoped(context).where(CouponUsage.coupon_id == coupon_id))
        return list(await self.scalars(stmt))

    async def delete_for_coupon(self, context: SecurityContext, coupon_id: str) -> None:
        stmt = delete(CouponUsage).where(CouponUsage.coupon_id == coupon_id)
        clause = self.visibility(context)
        if clause is not None:
            stmt = stmt.where(clause)
        await self.execute(stmt)

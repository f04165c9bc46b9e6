from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from vendorhub.db.base import Base, IdPkMixin, TenantMixin, TimestampMixin


class Coupon(IdPkMixin, TenantMixin, TimestampMixin, Base):
    """Discount coupon; used_count only moves through redemption."""
    __tablename__ = "coupons"
    __table_args__ = (UniqueConstraint("tenant_id", "code", name="uq_coupons_tenant_code"),)

    code: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    discount_type: Mapped[str] = mapped_column(Text, nullable=False)  # percentage / fixed
    discount_value: Mapped[int] = mapped_column(Integer, nullable=False)
    min_order_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expiry_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    max_usage: Mapped[int] = mapped_column(Integer, nullable=False)
    used_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active")


class CouponUsage(IdPkMixin, TenantMixin, TimestampMixin, Base):
    """One redemption of a coupon by a customer."""
    __tablename__ = "coupon_usages"

    coupon_id: Mapped[str] = mapped_column(
        Text, ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False, index=True
    )
    customer_id: Mapped[str] = mapped_column(Text, nullable=False)
    order_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    booking_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    discount_amount: Mapped[int] = mapped_column(Integer, nullable=False)

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from .common import BaseFilter, TenantReadModel, UtcDatetime

DiscountType = Literal["percentage", "fixed"]


class CouponCreate(BaseModel):
    """Create payload for a coupon. The usage counter always starts at zero."""
    code: str = Field(..., min_length=1)
    description: str
    discount_type: DiscountType
    discount_value: int = Field(..., gt=0)
    min_order_amount: int = Field(0, ge=0)
    expiry_date: UtcDatetime
    max_usage: int = Field(..., ge=1)
    status: str = Field("active", description="active / inactive")


class CouponUpdate(BaseModel):
    """used_count is not editable; it only moves through redemption."""
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[int] = Field(None, gt=0)
    min_order_amount: Optional[int] = Field(None, ge=0)
    expiry_date: Optional[UtcDatetime] = None
    max_usage: Optional[int] = Field(None, ge=1)
    status: Optional[str] = None


class CouponRead(TenantReadModel):
    """Read model for a coupon."""
    code: str
    description: str
    discount_type: DiscountType
    discount_value: int
    min_order_amount: int
    expiry_date: UtcDatetime
    max_usage: int
    used_count: int
    status: str


class CouponFilter(BaseFilter):
    status: Optional[str] = None
    discount_type: Optional[DiscountType] = None


class CouponRedemption(BaseModel):
    """One redemption request."""
    customer_id: str
    order_id: Optional[str] = None
    booking_id: Optional[str] = None
    discount_amount: int = Field(..., ge=0)


class CouponUsageRead(TenantReadModel):
    """Read model for a coupon usage."""
    coupon_id: str
    customer_id: str
    order_id: Optional[str] = None
    booking_id: Optional[str] = None
    discount_amount: int

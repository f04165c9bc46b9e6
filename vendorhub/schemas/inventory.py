from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from .common import BaseFilter, TenantReadModel

MovementType = Literal["in", "out"]


class ProductCreate(BaseModel):
    """Create payload for a product; opening stock is optional."""
    name: str = Field(..., min_length=1)
    category: str
    brand: Optional[str] = None
    price: int = Field(..., ge=0, description="Unit price, minor units")
    unit: str = Field(..., description="pcs / kg / litre / box")
    stock: int = Field(0, ge=0, description="Opening stock")
    is_active: bool = True


class ProductUpdate(BaseModel):
    """Stock is not editable here; use stock movements."""
    name: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = None
    brand: Optional[str] = None
    price: Optional[int] = Field(None, ge=0)
    unit: Optional[str] = None
    is_active: Optional[bool] = None


class ProductRead(TenantReadModel):
    """Read model for a product."""
    name: str
    category: str
    brand: Optional[str] = None
    price: int
    unit: str
    stock: int
    is_active: bool


class ProductFilter(BaseFilter):
    category: Optional[str] = None
    brand: Optional[str] = None
    is_active: Optional[bool] = None


class StockMovementRequest(BaseModel):
    """Inbound or outbound quantity with optional provenance."""
    quantity: int = Field(..., gt=0)
    reason: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None


class StockMovementRead(TenantReadModel):
    """Read model for a stock movement; quantity is negative for outbound movements."""
    product_id: str
    movement_type: MovementType
    quantity: int
    previous_stock: int
    new_stock: int
    reason: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    performed_by: Optional[str] = None


class StockMovementResult(BaseModel):
    """Outcome of a stock in/out: the movement and the product's resulting stock."""
    movement: StockMovementRead
    new_stock: int

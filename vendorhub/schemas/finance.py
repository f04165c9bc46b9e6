from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from .common import BaseFilter, TenantReadModel, UtcDatetime, utcnow

LedgerType = Literal["in", "out"]


class SupplierCreate(BaseModel):
    """Create payload for a supplier."""
    name: str = Field(..., min_length=1)
    business_name: Optional[str] = None
    phone: str = Field(..., min_length=1)
    email: Optional[str] = None
    category: str = Field("product", description="product / service / raw-material")
    status: str = Field("active")
    total_purchases: int = Field(0, ge=0, description="Lifetime purchases, minor units")
    outstanding_balance: int = Field(0, ge=0, description="Amount still payable, minor units")


class SupplierUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    business_name: Optional[str] = None
    phone: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None
    total_purchases: Optional[int] = Field(None, ge=0)
    outstanding_balance: Optional[int] = Field(None, ge=0)


class SupplierRead(TenantReadModel):
    """Read model for a supplier."""
    name: str
    business_name: Optional[str] = None
    phone: str
    email: Optional[str] = None
    category: str
    status: str
    total_purchases: int
    outstanding_balance: int
    last_transaction_date: Optional[UtcDatetime] = None


class SupplierFilter(BaseFilter):
    status: Optional[str] = None
    category: Optional[str] = None


class SupplierPaymentCreate(BaseModel):
    """Payment against a supplier's outstanding balance."""
    supplier_id: str = Field(..., description="Supplier being paid")
    amount: int = Field(..., gt=0, description="Amount paid, minor units")
    payment_date: UtcDatetime = Field(default_factory=utcnow)
    payment_mode: str = Field(..., description="cash / upi / bank / cheque")
    description: Optional[str] = None


class SupplierPaymentUpdate(BaseModel):
    amount: Optional[int] = Field(None, gt=0)
    payment_date: Optional[UtcDatetime] = None
    payment_mode: Optional[str] = None
    description: Optional[str] = None


class SupplierPaymentRead(TenantReadModel):
    """Read model for a supplier payment; applied_amount is what reduced the balance."""
    supplier_id: str
    amount: int
    applied_amount: int
    payment_date: UtcDatetime
    payment_mode: str
    description: Optional[str] = None


class SupplierPaymentFilter(BaseFilter):
    supplier_id: Optional[str] = None
    payment_mode: Optional[str] = None


class ExpenseCreate(BaseModel):
    """Create payload for an expense; the store books the matching ledger entry."""
    title: str = Field(..., min_length=1)
    category: str = Field(..., description="rent / salary / utilities / supplies / other")
    amount: int = Field(..., gt=0, description="Amount, minor units")
    expense_date: UtcDatetime = Field(default_factory=utcnow)
    payment_type: str = Field("cash")
    status: str = Field("paid")
    supplier_id: Optional[str] = None
    description: Optional[str] = None


class ExpenseUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = None
    amount: Optional[int] = Field(None, gt=0)
    expense_date: Optional[UtcDatetime] = None
    payment_type: Optional[str] = None
    status: Optional[str] = None
    supplier_id: Optional[str] = None
    description: Optional[str] = None


class ExpenseRead(TenantReadModel):
    """Read model for an expense."""
    title: str
    category: str
    amount: int
    expense_date: UtcDatetime
    payment_type: str
    status: str
    supplier_id: Optional[str] = None
    description: Optional[str] = None
    ledger_transaction_id: Optional[str] = None


class ExpenseFilter(BaseFilter):
    category: Optional[str] = None
    status: Optional[str] = None
    payment_type: Optional[str] = None
    supplier_id: Optional[str] = None


class LedgerTransactionCreate(BaseModel):
    """Manual ledger entry."""
    customer_id: Optional[str] = None
    type: LedgerType
    amount: int = Field(..., gt=0)
    transaction_date: UtcDatetime = Field(default_factory=utcnow)
    category: str = Field("other")
    payment_method: str = Field("cash")
    description: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    is_recurring: bool = False


class LedgerTransactionUpdate(BaseModel):
    customer_id: Optional[str] = None
    type: Optional[LedgerType] = None
    amount: Optional[int] = Field(None, gt=0)
    transaction_date: Optional[UtcDatetime] = None
    category: Optional[str] = None
    payment_method: Optional[str] = None
    description: Optional[str] = None
    is_recurring: Optional[bool] = None


class LedgerTransactionRead(TenantReadModel):
    """Read model for a ledger entry."""
    customer_id: Optional[str] = None
    type: LedgerType
    amount: int
    transaction_date: UtcDatetime
    category: str
    payment_method: str
    description: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    is_recurring: bool


class LedgerTransactionFilter(BaseFilter):
    customer_id: Optional[str] = None
    type: Optional[LedgerType] = None
    category: Optional[str] = None
    payment_method: Optional[str] = None
    reference_type: Optional[str] = None
    is_recurring: Optional[bool] = None


class LedgerSummary(BaseModel):
    """Totals over a set of ledger entries."""
    total_in: int = 0
    total_out: int = 0
    balance: int = 0
    transaction_count: int = 0


class CustomerBalance(BaseModel):
    """Money received from a customer minus money paid out to them."""
    customer_id: str
    total_in: int = 0
    total_out: int = 0
    balance: int = 0

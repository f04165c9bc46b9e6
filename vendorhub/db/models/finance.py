from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from vendorhub.db.base import Base, IdPkMixin, TenantMixin, TimestampMixin


class Supplier(IdPkMixin, TenantMixin, TimestampMixin, Base):
    """Supplier with a running outstanding balance (amount still payable)."""
    __tablename__ = "suppliers"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    business_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(Text, nullable=False, default="product")
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active")
    total_purchases: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    outstanding_balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_transaction_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class SupplierPayment(IdPkMixin, TenantMixin, TimestampMixin, Base):
    """
    Payment made to a supplier. applied_amount is the part that reduced the
    outstanding balance; deleting the payment gives exactly that much back.
    """
    __tablename__ = "supplier_payments"

    supplier_id: Mapped[str] = mapped_column(
        Text, ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    applied_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    payment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    payment_mode: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class LedgerTransaction(IdPkMixin, TenantMixin, TimestampMixin, Base):
    """Money in/out entry of the vendor's account book."""
    __tablename__ = "ledger_transactions"

    customer_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    type: Mapped[str] = mapped_column(Text, nullable=False)  # in / out
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False, default="other")
    payment_method: Mapped[str] = mapped_column(Text, nullable=False, default="cash")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reference_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reference_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class Expense(IdPkMixin, TenantMixin, TimestampMixin, Base):
    """Business expense; always paired with exactly one ledger 'out' entry."""
    __tablename__ = "expenses"

    title: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    expense_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    payment_type: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="paid")
    supplier_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ledger_transaction_id: Mapped[Optional[str]] = mapped_column(
        Text, ForeignKey("ledger_transactions.id", ondelete="SET NULL"), nullable=True
    )

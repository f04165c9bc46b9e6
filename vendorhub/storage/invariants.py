"""
Domain rules shared by every backing store.

Both stores call these functions with plain values so balances, stock levels,
redeemability and access to shared reference data come out identical whatever
store owns the entity. Nothing here performs I/O.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Tuple

from vendorhub.core.errors import (
    AccessDeniedError,
    CouponNotRedeemableError,
    InvariantViolation,
    LinkedRecordError,
)
from vendorhub.db.context import SecurityContext
from vendorhub.schemas.finance import CustomerBalance, LedgerSummary

EXPENSE_REFERENCE = "expense"
EXPENSE_LEDGER_CATEGORY = "expense"
PLATFORM_CREATOR = "platform"

STOCK_IN = "in"
STOCK_OUT = "out"


# Supplier balance


# PUBLIC_INTERFACE
def apply_payment(balance: int, amount: int) -> Tuple[int, int]:
    """
    Apply a payment to an outstanding balance.

    Returns (new_balance, applied). The balance never goes below zero; applied is
    the part of the payment that actually reduced it, so reverting the payment
    gives back exactly `applied`.
    """
    if amount <= 0:
        raise InvariantViolation("payment amount must be positive")
    applied = min(max(balance, 0), amount)
    return balance - applied, applied


# PUBLIC_INTERFACE
def revert_payment(balance: int, applied: int) -> int:
    """Undo a payment previously applied with apply_payment."""
    return balance + applied


# Stock


# PUBLIC_INTERFACE
def stock_after(current: int, movement_type: str, quantity: int) -> Tuple[int, int]:
    """
    Compute the stock level after a movement.

    Returns (new_stock, signed_quantity). Outbound movements floor at zero and
    record a negative quantity.
    """
    if quantity <= 0:
        raise InvariantViolation("stock movement quantity must be positive")
    if movement_type == STOCK_IN:
        return current + quantity, quantity
    if movement_type == STOCK_OUT:
        return max(0, current - quantity), -quantity
    raise InvariantViolation(f"unknown stock movement type '{movement_type}'")


# Coupons


# PUBLIC_INTERFACE
def ensure_redeemable(
    *,
    code: str,
    status: str,
    expiry_date: datetime,
    used_count: int,
    max_usage: int,
    now: datetime,
) -> None:
    """Reject redemption of an inactive, expired or exhausted coupon."""
    if status != "active":
        raise CouponNotRedeemableError(f"coupon '{code}' is not active")
    if expiry_date < now:
        raise CouponNotRedeemableError(f"coupon '{code}' has expired")
    if used_count >= max_usage:
        raise CouponNotRedeemableError(f"coupon '{code}' has reached its usage limit")


# Expenses and the ledger


# PUBLIC_INTERFACE
def expense_ledger_values(expense_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """Ledger entry values mirroring an expense; the entry is always money out."""
    return {
        "customer_id": None,
        "type": "out",
        "amount": fields["amount"],
        "transaction_date": fields["expense_date"],
        "category": EXPENSE_LEDGER_CATEGORY,
        "payment_method": fields["payment_type"],
        "description": fields["title"],
        "reference_type": EXPENSE_REFERENCE,
        "reference_id": expense_id,
        "is_recurring": False,
    }


def ensure_not_expense_owned(reference_type: Optional[str], entry_id: str) -> None:
    """Entries booked for an expense change only through that expense."""
    if reference_type == EXPENSE_REFERENCE:
        raise LinkedRecordError(f"ledger entry '{entry_id}' belongs to an expense; change the expense instead")


def summarize_ledger(entries: Iterable[Any]) -> LedgerSummary:
    total_in = total_out = count = 0
    for entry in entries:
        count += 1
        if entry.type == "in":
            total_in += entry.amount
        elif entry.type == "out":
            total_out += entry.amount
    return LedgerSummary(
        total_in=total_in,
        total_out=total_out,
        balance=total_in - total_out,
        transaction_count=count,
    )


def customer_balance(customer_id: str, entries: Iterable[Any]) -> CustomerBalance:
    summary = summarize_ledger(entries)
    return CustomerBalance(
        customer_id=customer_id,
        total_in=summary.total_in,
        total_out=summary.total_out,
        balance=summary.balance,
    )


# Shared reference data (categories)


def category_visible(context: SecurityContext, *, is_global: bool, created_by: str) -> bool:
    """Global categories are visible to everyone, tenant-authored ones to their author."""
    if context.is_admin or is_global:
        return True
    return bool(context.tenant_id) and created_by == context.tenant_id


def category_creator(context: SecurityContext, is_global: bool) -> str:
    """Author recorded on a new category; only admins may create global ones."""
    if context.is_admin:
        return PLATFORM_CREATOR
    tenant_id = context.require_tenant()
    if is_global:
        raise AccessDeniedError("only administrators can create global categories")
    return tenant_id


def ensure_category_writable(
    context: SecurityContext,
    *,
    is_global: bool,
    created_by: str,
    changes: Optional[Dict[str, Any]] = None,
) -> None:
    """Tenants may change only their own, non-global categories, and never make them global."""
    if context.is_admin:
        return
    tenant_id = context.require_tenant()
    if is_global or created_by != tenant_id:
        raise AccessDeniedError("category is not owned by this vendor")
    if changes and changes.get("is_global"):
        raise AccessDeniedError("only administrators can make a category global")


# Vendors (tenant registry)


def ensure_vendor_writable(
    context: SecurityContext,
    vendor_id: str,
    changes: Optional[Dict[str, Any]] = None,
) -> None:
    """Admins manage every vendor; a vendor may edit its own profile but not its status."""
    if context.is_admin:
        return
    if context.require_tenant() != vendor_id:
        raise AccessDeniedError("vendor profile is not owned by this context")
    if changes and "status" in changes:
        raise AccessDeniedError("only administrators can change a vendor's status")

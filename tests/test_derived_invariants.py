"""Derived invariants kept by both backing stores."""
from __future__ import annotations

from datetime import timedelta

import pytest

from vendorhub.core.errors import (
    CouponNotRedeemableError,
    InvariantViolation,
    LinkedRecordError,
    ReferenceNotFoundError,
)
from vendorhub.schemas.common import utcnow
from vendorhub.schemas.finance import (
    ExpenseCreate,
    ExpenseUpdate,
    LedgerTransactionCreate,
    LedgerTransactionFilter,
    LedgerTransactionUpdate,
    SupplierCreate,
    SupplierPaymentUpdate,
    SupplierPaymentCreate,
)
from vendorhub.schemas.inventory import ProductCreate, StockMovementRequest
from vendorhub.schemas.promotions import CouponCreate, CouponRedemption, CouponUpdate

TENANT_A = "vendor-a"


async def _supplier(storage, ctx, balance=1000):
    return await storage.suppliers.create(ctx, SupplierCreate(name="Mill", phone="1", outstanding_balance=balance))


def _payment(supplier_id, amount):
    return SupplierPaymentCreate(supplier_id=supplier_id, amount=amount, payment_mode="upi")


class TestSupplierPayments:
    async def test_payment_reduces_outstanding_balance(self, storage, tenant_a):
        supplier = await _supplier(storage, tenant_a, 1000)
        payment = await storage.supplier_payments.create(tenant_a, _payment(supplier.id, 300))
        assert payment.applied_amount == 300
        refreshed = await storage.suppliers.get(tenant_a, supplier.id)
        assert refreshed.outstanding_balance == 700
        assert refreshed.last_transaction_date == payment.payment_date

    async def test_balance_never_goes_negative(self, storage, tenant_a):
        supplier = await _supplier(storage, tenant_a, 200)
        payment = await storage.supplier_payments.create(tenant_a, _payment(supplier.id, 500))
        assert payment.amount == 500
        assert payment.applied_amount == 200
        assert (await storage.suppliers.get(tenant_a, supplier.id)).outstanding_balance == 0

    async def test_update_reapplies_and_delete_reverts(self, storage, tenant_a):
        supplier = await _supplier(storage, tenant_a, 1000)
        payment = await storage.supplier_payments.create(tenant_a, _payment(supplier.id, 300))

        updated = await storage.supplier_payments.update(tenant_a, payment.id, SupplierPaymentUpdate(amount=100))
        assert updated.applied_amount == 100
        assert (await storage.suppliers.get(tenant_a, supplier.id)).outstanding_balance == 900

        assert await storage.supplier_payments.delete(tenant_a, payment.id)
        assert (await storage.suppliers.get(tenant_a, supplier.id)).outstanding_balance == 1000

    async def test_null_amount_leaves_payment_and_balance_alone(self, storage, tenant_a):
        supplier = await _supplier(storage, tenant_a, 1000)
        payment = await storage.supplier_payments.create(tenant_a, _payment(supplier.id, 300))

        changes = SupplierPaymentUpdate.model_validate({"amount": None, "description": "advance"})
        updated = await storage.supplier_payments.update(tenant_a, payment.id, changes)
        assert (updated.amount, updated.applied_amount) == (300, 300)
        assert updated.description == "advance"
        assert (await storage.suppliers.get(tenant_a, supplier.id)).outstanding_balance == 700

    async def test_delete_of_capped_payment_restores_only_applied_part(self, storage, tenant_a):
        supplier = await _supplier(storage, tenant_a, 200)
        payment = await storage.supplier_payments.create(tenant_a, _payment(supplier.id, 500))
        await storage.supplier_payments.delete(tenant_a, payment.id)
        assert (await storage.suppliers.get(tenant_a, supplier.id)).outstanding_balance == 200

    async def test_unknown_supplier_is_rejected_without_side_effects(self, storage, tenant_a):
        with pytest.raises(ReferenceNotFoundError) as err:
            await storage.supplier_payments.create(tenant_a, _payment("missing", 100))
        assert err.value.kind == "supplier"
        assert await storage.supplier_payments.list_by_tenant(tenant_a, TENANT_A) == []

    async def test_other_tenants_supplier_is_not_found(self, storage, tenant_a, tenant_b):
        supplier = await _supplier(storage, tenant_a, 1000)
        with pytest.raises(ReferenceNotFoundError):
            await storage.supplier_payments.create(tenant_b, _payment(supplier.id, 100))
        assert (await storage.suppliers.get(tenant_a, supplier.id)).outstanding_balance == 1000

    async def test_deleting_supplier_deletes_payments(self, storage, tenant_a):
        supplier = await _supplier(storage, tenant_a, 1000)
        other = await _supplier(storage, tenant_a, 50)
        await storage.supplier_payments.create(tenant_a, _payment(supplier.id, 100))
        kept = await storage.supplier_payments.create(tenant_a, _payment(other.id, 10))

        assert await storage.suppliers.delete(tenant_a, supplier.id)
        assert await storage.supplier_payments.list_by_supplier(tenant_a, supplier.id) == []
        assert [p.id for p in await storage.supplier_payments.list_by_tenant(tenant_a, TENANT_A)] == [kept.id]


class TestExpensesAndLedger:
    async def test_expense_books_one_ledger_out_entry(self, storage, tenant_a):
        expense = await storage.expenses.create(
            tenant_a, ExpenseCreate(title="Rent", category="rent", amount=5000, payment_type="bank")
        )
        entries = await storage.ledger_transactions.list_by_tenant(
            tenant_a, TENANT_A, LedgerTransactionFilter(reference_type="expense")
        )
        assert len(entries) == 1
        entry = entries[0]
        assert entry.id == expense.ledger_transaction_id
        assert entry.type == "out"
        assert entry.amount == 5000
        assert entry.payment_method == "bank"
        assert entry.description == "Rent"
        assert entry.reference_id == expense.id

    async def test_expense_update_keeps_entry_in_step(self, storage, tenant_a):
        expense = await storage.expenses.create(tenant_a, ExpenseCreate(title="Power", category="utilities", amount=100))
        await storage.expenses.update(tenant_a, expense.id, ExpenseUpdate(amount=250, title="Power bill"))
        entries = await storage.ledger_transactions.list_by_tenant(tenant_a, TENANT_A)
        assert len(entries) == 1
        assert entries[0].amount == 250
        assert entries[0].description == "Power bill"

    async def test_expense_delete_removes_entry(self, storage, tenant_a):
        expense = await storage.expenses.create(tenant_a, ExpenseCreate(title="Tea", category="other", amount=20))
        assert await storage.expenses.delete(tenant_a, expense.id)
        assert await storage.ledger_transactions.list_by_tenant(tenant_a, TENANT_A) == []

    async def test_expense_owned_entry_cannot_be_edited_directly(self, storage, tenant_a):
        expense = await storage.expenses.create(tenant_a, ExpenseCreate(title="Rent", category="rent", amount=10))
        entry_id = expense.ledger_transaction_id
        with pytest.raises(LinkedRecordError):
            await storage.ledger_transactions.update(tenant_a, entry_id, LedgerTransactionUpdate(amount=1))
        with pytest.raises(LinkedRecordError):
            await storage.ledger_transactions.delete(tenant_a, entry_id)
        with pytest.raises(LinkedRecordError):
            await storage.ledger_transactions.create(
                tenant_a,
                LedgerTransactionCreate(type="out", amount=5, reference_type="expense", reference_id=expense.id),
            )
        assert (await storage.ledger_transactions.get(tenant_a, entry_id)).amount == 10

    async def test_summary_and_customer_balance(self, storage, tenant_a, tenant_b):
        ledger = storage.ledger_transactions
        await ledger.create(tenant_a, LedgerTransactionCreate(type="in", amount=500, customer_id="c1"))
        await ledger.create(tenant_a, LedgerTransactionCreate(type="in", amount=200, customer_id="c2"))
        await ledger.create(tenant_a, LedgerTransactionCreate(type="out", amount=50, customer_id="c1"))
        await storage.expenses.create(tenant_a, ExpenseCreate(title="Rent", category="rent", amount=100))
        await ledger.create(tenant_b, LedgerTransactionCreate(type="in", amount=9999))

        summary = await ledger.summary(tenant_a)
        assert summary.total_in == 700
        assert summary.total_out == 150
        assert summary.balance == 550
        assert summary.transaction_count == 4

        balance = await ledger.customer_balance(tenant_a, "c1")
        assert (balance.total_in, balance.total_out, balance.balance) == (500, 50, 450)

    async def test_manual_entries_are_editable(self, storage, tenant_a):
        entry = await storage.ledger_transactions.create(tenant_a, LedgerTransactionCreate(type="in", amount=10))
        updated = await storage.ledger_transactions.update(tenant_a, entry.id, LedgerTransactionUpdate(amount=15))
        assert updated.amount == 15
        assert await storage.ledger_transactions.delete(tenant_a, entry.id)


class TestStock:
    async def _product(self, storage, ctx, stock=10):
        return await storage.products.create(
            ctx, ProductCreate(name="Whey", category="supplements", price=1999, unit="box", stock=stock)
        )

    async def test_stock_in_and_out(self, storage, tenant_a):
        product = await self._product(storage, tenant_a, 10)
        result = await storage.products.record_stock_in(tenant_a, product.id, StockMovementRequest(quantity=5))
        assert result.new_stock == 15
        assert result.movement.previous_stock == 10
        assert result.movement.quantity == 5
        assert result.movement.reason == "Stock In"
        assert result.movement.performed_by == "user-a"

        out = await storage.products.record_stock_out(
            tenant_a, product.id, StockMovementRequest(quantity=4, reason="sold")
        )
        assert out.new_stock == 11
        assert out.movement.quantity == -4
        assert (await storage.products.get(tenant_a, product.id)).stock == 11
        assert len(await storage.products.list_movements(tenant_a, product.id)) == 2

    async def test_stock_out_floors_at_zero(self, storage, tenant_a):
        product = await self._product(storage, tenant_a, 3)
        result = await storage.products.record_stock_out(tenant_a, product.id, StockMovementRequest(quantity=10))
        assert result.new_stock == 0
        assert result.movement.new_stock == 0
        assert (await storage.products.get(tenant_a, product.id)).stock == 0

    async def test_unknown_product_returns_none(self, storage, tenant_a, tenant_b):
        product = await self._product(storage, tenant_a)
        assert await storage.products.record_stock_in(tenant_b, product.id, StockMovementRequest(quantity=1)) is None
        assert await storage.products.record_stock_in(tenant_a, "missing", StockMovementRequest(quantity=1)) is None
        assert await storage.products.list_movements(tenant_b, product.id) == []

    async def test_deleting_product_deletes_movements(self, storage, tenant_a):
        product = await self._product(storage, tenant_a)
        await storage.products.record_stock_in(tenant_a, product.id, StockMovementRequest(quantity=1))
        assert await storage.products.delete(tenant_a, product.id)
        assert await storage.products.list_movements(tenant_a, product.id) == []


def _coupon(code="WELCOME10", max_usage=2, **extra) -> CouponCreate:
    values = dict(
        code=code,
        description="10% off",
        discount_type="percentage",
        discount_value=10,
        expiry_date=utcnow() + timedelta(days=30),
        max_usage=max_usage,
    )
    values.update(extra)
    return CouponCreate(**values)


class TestCoupons:
    async def test_redeem_records_usage_and_counts(self, storage, tenant_a):
        coupon = await storage.coupons.create(tenant_a, _coupon())
        assert coupon.used_count == 0
        usage = await storage.coupons.redeem(
            tenant_a, coupon.id, CouponRedemption(customer_id="c1", order_id="o1", discount_amount=50)
        )
        assert usage.coupon_id == coupon.id
        assert (await storage.coupons.get(tenant_a, coupon.id)).used_count == 1
        assert [u.id for u in await storage.coupons.list_usages(tenant_a, coupon.id)] == [usage.id]

    async def test_usage_cap(self, storage, tenant_a):
        coupon = await storage.coupons.create(tenant_a, _coupon(max_usage=1))
        await storage.coupons.redeem(tenant_a, coupon.id, CouponRedemption(customer_id="c1", discount_amount=5))
        with pytest.raises(CouponNotRedeemableError):
            await storage.coupons.redeem(tenant_a, coupon.id, CouponRedemption(customer_id="c2", discount_amount=5))
        assert (await storage.coupons.get(tenant_a, coupon.id)).used_count == 1
        assert len(await storage.coupons.list_usages(tenant_a, coupon.id)) == 1

    async def test_expired_and_inactive_coupons(self, storage, tenant_a):
        expired = await storage.coupons.create(tenant_a, _coupon(code="OLD", expiry_date=utcnow() - timedelta(days=1)))
        with pytest.raises(CouponNotRedeemableError):
            await storage.coupons.redeem(tenant_a, expired.id, CouponRedemption(customer_id="c1", discount_amount=1))

        active = await storage.coupons.create(tenant_a, _coupon(code="PAUSED"))
        await storage.coupons.update(tenant_a, active.id, CouponUpdate(status="inactive"))
        with pytest.raises(CouponNotRedeemableError):
            await storage.coupons.redeem(tenant_a, active.id, CouponRedemption(customer_id="c1", discount_amount=1))

    async def test_unknown_coupon(self, storage, tenant_a):
        with pytest.raises(ReferenceNotFoundError):
            await storage.coupons.redeem(tenant_a, "missing", CouponRedemption(customer_id="c1", discount_amount=1))

    async def test_codes_unique_per_vendor(self, storage, tenant_a, tenant_b):
        await storage.coupons.create(tenant_a, _coupon(code="SAME"))
        with pytest.raises(InvariantViolation):
            await storage.coupons.create(tenant_a, _coupon(code="SAME"))
        other = await storage.coupons.create(tenant_b, _coupon(code="SAME"))
        assert (await storage.coupons.get_by_code(tenant_b, "SAME")).id == other.id
        assert (await storage.coupons.get_by_code(tenant_a, "SAME")).tenant_id == TENANT_A

    async def test_deleting_coupon_deletes_usages(self, storage, tenant_a):
        coupon = await storage.coupons.create(tenant_a, _coupon())
        await storage.coupons.redeem(tenant_a, coupon.id, CouponRedemption(customer_id="c1", discount_amount=1))
        assert await storage.coupons.delete(tenant_a, coupon.id)
        assert await storage.coupons.list_usages(tenant_a, coupon.id) == []

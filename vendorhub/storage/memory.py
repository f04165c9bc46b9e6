"""
Ephemeral backing store: keyed maps per entity kind held in process memory.

Used for sample data, tests and for every entity that has not been migrated to
the database yet. Ids are prefix + a process-wide counter. Each operation
validates everything before it mutates anything and contains no await between
the first and last mutation, so derived invariants apply all-or-nothing.
Returned models are deep copies; callers cannot mutate stored rows.
"""

from __future__ import annotations

import itertools
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Sequence, Type

from pydantic import BaseModel

from vendorhub.core.errors import InvariantViolation, ReferenceNotFoundError
from vendorhub.db.context import SecurityContext
from vendorhub.schemas.common import utcnow
from vendorhub.schemas.customers import CustomerRead, LeadRead
from vendorhub.schemas.finance import (
    ExpenseCreate,
    ExpenseRead,
    ExpenseUpdate,
    LedgerTransactionCreate,
    LedgerTransactionRead,
    LedgerTransactionUpdate,
    SupplierPaymentCreate,
    SupplierPaymentRead,
    SupplierPaymentUpdate,
    SupplierRead,
)
from vendorhub.schemas.inventory import (
    ProductRead,
    StockMovementRead,
    StockMovementRequest,
    StockMovementResult,
)
from vendorhub.schemas.promotions import CouponCreate, CouponRead, CouponRedemption, CouponUsageRead
from vendorhub.schemas.tenancy import (
    CategoryCreate,
    CategoryFilter,
    CategoryRead,
    CategoryUpdate,
    VendorCreate,
    VendorFilter,
    VendorRead,
    VendorUpdate,
)

from . import invariants
from .base import (
    C,
    CategoryStore,
    CouponStore,
    CustomerStore,
    E,
    EntityStore,
    ExpenseStore,
    F,
    LeadStore,
    LedgerStore,
    ProductStore,
    Storage,
    SupplierPaymentStore,
    SupplierStore,
    U,
    VendorStore,
    ensure_tenant_scope,
    matches_filters,
    update_values,
)

logger = logging.getLogger(__name__)

STOCK_MOVEMENTS = "stock_movements"
COUPON_USAGES = "coupon_usages"


class MemoryState:
    """Tables shared by every store of one MemoryStorage."""

    def __init__(self) -> None:
        self.tables: Dict[str, Dict[str, BaseModel]] = defaultdict(dict)
        self._counter = itertools.count(1)

    def next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._counter)}"


def _newest_first(rows: List[E]) -> List[E]:
    return sorted(rows, key=lambda r: (r.created_at, r.id), reverse=True)


class MemoryEntityStore(EntityStore[E, C, U, F]):
    """Generic tenant-owned entity kept in a dict keyed by id."""

    read_model: Type[BaseModel]
    id_prefix: str

    def __init__(self, state: MemoryState) -> None:
        self._state = state

    @property
    def _rows(self) -> Dict[str, Any]:
        return self._state.tables[self.kind.value]

    def _visible(self, context: SecurityContext, row: Any) -> bool:
        return context.can_see(getattr(row, self.owner_field))

    def _find(self, context: SecurityContext, entity_id: str) -> Optional[Any]:
        row = self._rows.get(entity_id)
        if row is None or not self._visible(context, row):
            return None
        return row

    def _matching(self, context: SecurityContext, owners: Callable[[Any], bool], filters: Optional[F]) -> List[E]:
        rows = [
            row.model_copy(deep=True)
            for row in self._rows.values()
            if owners(getattr(row, self.owner_field))
            and self._visible(context, row)
            and matches_filters(row, filters, search_fields=self.search_fields, date_field=self.date_field)
        ]
        return _newest_first(rows)

    def _new_row(self, values: Dict[str, Any], **owner: Any) -> Any:
        now = utcnow()
        return self.read_model.model_validate(
            {**values, **owner, "id": self._state.next_id(self.id_prefix), "created_at": now, "updated_at": now}
        )

    def _merged(self, row: Any, values: Dict[str, Any]) -> Any:
        return self.read_model.model_validate({**row.model_dump(), **values, "updated_at": utcnow()})

    async def get(self, context: SecurityContext, entity_id: str) -> Optional[E]:
        row = self._find(context, entity_id)
        return row.model_copy(deep=True) if row is not None else None

    async def list_by_tenant(self, context: SecurityContext, tenant_id: str, filters: Optional[F] = None) -> List[E]:
        ensure_tenant_scope(context, tenant_id)
        return self._matching(context, lambda owner: owner == tenant_id, filters)

    async def list_for_tenants(
        self, context: SecurityContext, tenant_ids: Sequence[str], filters: Optional[F] = None
    ) -> List[E]:
        context.require_admin()
        wanted = set(tenant_ids)
        return self._matching(context, lambda owner: owner in wanted, filters)

    async def create(self, context: SecurityContext, payload: C) -> E:
        tenant_id = context.require_tenant()
        row = self._new_row(payload.model_dump(), tenant_id=tenant_id)
        self._rows[row.id] = row
        return row.model_copy(deep=True)

    async def update(self, context: SecurityContext, entity_id: str, changes: U) -> Optional[E]:
        row = self._find(context, entity_id)
        if row is None:
            return None
        merged = self._merged(row, update_values(changes, self.read_model))
        self._rows[entity_id] = merged
        return merged.model_copy(deep=True)

    async def delete(self, context: SecurityContext, entity_id: str) -> bool:
        if self._find(context, entity_id) is None:
            return False
        del self._rows[entity_id]
        return True


class MemoryVendorStore(MemoryEntityStore, VendorStore):
    read_model = VendorRead
    id_prefix = "vnd"

    async def create(self, context: SecurityContext, payload: VendorCreate) -> VendorRead:
        context.require_admin()
        row = self._new_row(payload.model_dump())
        self._rows[row.id] = row
        logger.info("Vendor registered vendor_id=%s", row.id)
        return row.model_copy(deep=True)

    async def update(self, context: SecurityContext, entity_id: str, changes: VendorUpdate) -> Optional[VendorRead]:
        row = self._find(context, entity_id)
        if row is None:
            return None
        values = update_values(changes, self.read_model)
        invariants.ensure_vendor_writable(context, entity_id, values)
        merged = self._merged(row, values)
        self._rows[entity_id] = merged
        return merged.model_copy(deep=True)

    async def delete(self, context: SecurityContext, entity_id: str) -> bool:
        context.require_admin()
        return await super().delete(context, entity_id)

    async def list_all(self, context: SecurityContext, filters: Optional[VendorFilter] = None) -> List[VendorRead]:
        context.require_admin()
        return self._matching(context, lambda owner: True, filters)


class MemoryCategoryStore(MemoryEntityStore, CategoryStore):
    read_model = CategoryRead
    id_prefix = "cat"

    def _visible(self, context: SecurityContext, row: Any) -> bool:
        return invariants.category_visible(context, is_global=row.is_global, created_by=row.created_by)

    async def list_visible(self, context: SecurityContext, filters: Optional[CategoryFilter] = None) -> List[CategoryRead]:
        return self._matching(context, lambda owner: True, filters)

    async def create(self, context: SecurityContext, payload: CategoryCreate) -> CategoryRead:
        created_by = invariants.category_creator(context, payload.is_global)
        row = self._new_row(payload.model_dump(), created_by=created_by)
        self._rows[row.id] = row
        return row.model_copy(deep=True)

    async def update(self, context: SecurityContext, entity_id: str, changes: CategoryUpdate) -> Optional[CategoryRead]:
        row = self._find(context, entity_id)
        if row is None:
            return None
        values = update_values(changes, self.read_model)
        invariants.ensure_category_writable(context, is_global=row.is_global, created_by=row.created_by, changes=values)
        merged = self._merged(row, values)
        self._rows[entity_id] = merged
        return merged.model_copy(deep=True)

    async def delete(self, context: SecurityContext, entity_id: str) -> bool:
        row = self._find(context, entity_id)
        if row is None:
            return False
        invariants.ensure_category_writable(context, is_global=row.is_global, created_by=row.created_by)
        del self._rows[entity_id]
        return True


class MemoryCustomerStore(MemoryEntityStore, CustomerStore):
    read_model = CustomerRead
    id_prefix = "cus"


class MemoryLeadStore(MemoryEntityStore, LeadStore):
    read_model = LeadRead
    id_prefix = "lead"


class MemorySupplierStore(MemoryEntityStore, SupplierStore):
    read_model = SupplierRead
    id_prefix = "sup"

    async def delete(self, context: SecurityContext, entity_id: str) -> bool:
        if self._find(context, entity_id) is None:
            return False
        payments = self._state.tables[SupplierPaymentStore.kind.value]
        for payment_id in [p.id for p in payments.values() if p.supplier_id == entity_id]:
            del payments[payment_id]
        del self._rows[entity_id]
        return True


class MemorySupplierPaymentStore(MemoryEntityStore, SupplierPaymentStore):
    read_model = SupplierPaymentRead
    id_prefix = "spay"

    @property
    def _suppliers(self) -> Dict[str, Any]:
        return self._state.tables[SupplierStore.kind.value]

    def _supplier(self, context: SecurityContext, supplier_id: str) -> Optional[Any]:
        supplier = self._suppliers.get(supplier_id)
        if supplier is None or not context.can_see(supplier.tenant_id):
            return None
        return supplier

    def _save_supplier(self, supplier: Any, values: Dict[str, Any]) -> None:
        self._suppliers[supplier.id] = SupplierRead.model_validate(
            {**supplier.model_dump(), **values, "updated_at": utcnow()}
        )

    async def create(self, context: SecurityContext, payload: SupplierPaymentCreate) -> SupplierPaymentRead:
        tenant_id = context.require_tenant()
        supplier = self._supplier(context, payload.supplier_id)
        if supplier is None:
            raise ReferenceNotFoundError("supplier", payload.supplier_id)
        balance, applied = invariants.apply_payment(supplier.outstanding_balance, payload.amount)
        row = self._new_row(payload.model_dump(), tenant_id=tenant_id, applied_amount=applied)

        self._rows[row.id] = row
        self._save_supplier(supplier, {"outstanding_balance": balance, "last_transaction_date": row.payment_date})
        return row.model_copy(deep=True)

    async def update(
        self, context: SecurityContext, entity_id: str, changes: SupplierPaymentUpdate
    ) -> Optional[SupplierPaymentRead]:
        row = self._find(context, entity_id)
        if row is None:
            return None
        values = update_values(changes, self.read_model)
        supplier = self._supplier(context, row.supplier_id)
        if supplier is None or "amount" not in values:
            merged = self._merged(row, values)
            self._rows[entity_id] = merged
            return merged.model_copy(deep=True)

        restored = invariants.revert_payment(supplier.outstanding_balance, row.applied_amount)
        balance, applied = invariants.apply_payment(restored, values["amount"])
        merged = self._merged(row, {**values, "applied_amount": applied})

        self._rows[entity_id] = merged
        self._save_supplier(supplier, {"outstanding_balance": balance})
        return merged.model_copy(deep=True)

    async def delete(self, context: SecurityContext, entity_id: str) -> bool:
        row = self._find(context, entity_id)
        if row is None:
            return False
        supplier = self._supplier(context, row.supplier_id)
        del self._rows[entity_id]
        if supplier is not None:
            self._save_supplier(
                supplier, {"outstanding_balance": invariants.revert_payment(supplier.outstanding_balance, row.applied_amount)}
            )
        return True


class MemoryLedgerStore(MemoryEntityStore, LedgerStore):
    read_model = LedgerTransactionRead
    id_prefix = "txn"

    async def create(self, context: SecurityContext, payload: LedgerTransactionCreate) -> LedgerTransactionRead:
        invariants.ensure_not_expense_owned(payload.reference_type, "new")
        return await super().create(context, payload)

    async def update(
        self, context: SecurityContext, entity_id: str, changes: LedgerTransactionUpdate
    ) -> Optional[LedgerTransactionRead]:
        row = self._find(context, entity_id)
        if row is not None:
            invariants.ensure_not_expense_owned(row.reference_type, entity_id)
        return await super().update(context, entity_id, changes)

    async def delete(self, context: SecurityContext, entity_id: str) -> bool:
        row = self._find(context, entity_id)
        if row is not None:
            invariants.ensure_not_expense_owned(row.reference_type, entity_id)
        return await super().delete(context, entity_id)


class MemoryExpenseStore(MemoryEntityStore, ExpenseStore):
    read_model = ExpenseRead
    id_prefix = "exp"

    @property
    def _ledger(self) -> Dict[str, Any]:
        return self._state.tables[LedgerStore.kind.value]

    def _ledger_row(self, tenant_id: str, expense: Any) -> LedgerTransactionRead:
        now = utcnow()
        return LedgerTransactionRead.model_validate(
            {
                **invariants.expense_ledger_values(expense.id, expense.model_dump()),
                "id": self._state.next_id(MemoryLedgerStore.id_prefix),
                "tenant_id": tenant_id,
                "created_at": now,
                "updated_at": now,
            }
        )

    async def create(self, context: SecurityContext, payload: ExpenseCreate) -> ExpenseRead:
        tenant_id = context.require_tenant()
        expense = self._new_row(payload.model_dump(), tenant_id=tenant_id)
        entry = self._ledger_row(tenant_id, expense)
        expense = expense.model_copy(update={"ledger_transaction_id": entry.id})

        self._ledger[entry.id] = entry
        self._rows[expense.id] = expense
        return expense.model_copy(deep=True)

    async def update(self, context: SecurityContext, entity_id: str, changes: ExpenseUpdate) -> Optional[ExpenseRead]:
        row = self._find(context, entity_id)
        if row is None:
            return None
        merged = self._merged(row, update_values(changes, self.read_model))
        entry = self._ledger.get(merged.ledger_transaction_id or "")
        if entry is None:
            entry = self._ledger_row(row.tenant_id, merged)
            merged = merged.model_copy(update={"ledger_transaction_id": entry.id})
        else:
            entry = LedgerTransactionRead.model_validate(
                {
                    **entry.model_dump(),
                    **invariants.expense_ledger_values(merged.id, merged.model_dump()),
                    "updated_at": merged.updated_at,
                }
            )

        self._ledger[entry.id] = entry
        self._rows[entity_id] = merged
        return merged.model_copy(deep=True)

    async def delete(self, context: SecurityContext, entity_id: str) -> bool:
        row = self._find(context, entity_id)
        if row is None:
            return False
        self._ledger.pop(row.ledger_transaction_id or "", None)
        del self._rows[entity_id]
        return True


class MemoryProductStore(MemoryEntityStore, ProductStore):
    read_model = ProductRead
    id_prefix = "prd"

    @property
    def _movements(self) -> Dict[str, Any]:
        return self._state.tables[STOCK_MOVEMENTS]

    async def _record(
        self, context: SecurityContext, product_id: str, movement_type: str, request: StockMovementRequest
    ) -> Optional[StockMovementResult]:
        context.require_tenant()
        product = self._find(context, product_id)
        if product is None:
            return None
        new_stock, signed = invariants.stock_after(product.stock, movement_type, request.quantity)
        now = utcnow()
        movement = StockMovementRead(
            id=self._state.next_id("mov"),
            tenant_id=product.tenant_id,
            product_id=product_id,
            movement_type=movement_type,
            quantity=signed,
            previous_stock=product.stock,
            new_stock=new_stock,
            reason=request.reason or ("Stock In" if movement_type == invariants.STOCK_IN else "Stock Out"),
            reference_type=request.reference_type,
            reference_id=request.reference_id,
            performed_by=context.actor_id,
            created_at=now,
            updated_at=now,
        )

        self._movements[movement.id] = movement
        self._rows[product_id] = product.model_copy(update={"stock": new_stock, "updated_at": now})
        return StockMovementResult(movement=movement.model_copy(deep=True), new_stock=new_stock)

    async def record_stock_in(
        self, context: SecurityContext, product_id: str, request: StockMovementRequest
    ) -> Optional[StockMovementResult]:
        return await self._record(context, product_id, invariants.STOCK_IN, request)

    async def record_stock_out(
        self, context: SecurityContext, product_id: str, request: StockMovementRequest
    ) -> Optional[StockMovementResult]:
        return await self._record(context, product_id, invariants.STOCK_OUT, request)

    async def list_movements(self, context: SecurityContext, product_id: str) -> List[StockMovementRead]:
        if self._find(context, product_id) is None:
            return []
        rows = [m.model_copy(deep=True) for m in self._movements.values() if m.product_id == product_id]
        return _newest_first(rows)

    async def delete(self, context: SecurityContext, entity_id: str) -> bool:
        if self._find(context, entity_id) is None:
            return False
        for movement_id in [m.id for m in self._movements.values() if m.product_id == entity_id]:
            del self._movements[movement_id]
        del self._rows[entity_id]
        return True


class MemoryCouponStore(MemoryEntityStore, CouponStore):
    read_model = CouponRead
    id_prefix = "cpn"

    @property
    def _usages(self) -> Dict[str, Any]:
        return self._state.tables[COUPON_USAGES]

    def _code_taken(self, tenant_id: str, code: str) -> bool:
        return any(c.tenant_id == tenant_id and c.code == code for c in self._rows.values())

    async def create(self, context: SecurityContext, payload: CouponCreate) -> CouponRead:
        tenant_id = context.require_tenant()
        if self._code_taken(tenant_id, payload.code):
            raise InvariantViolation(f"coupon code '{payload.code}' already exists")
        row = self._new_row(payload.model_dump(), tenant_id=tenant_id, used_count=0)
        self._rows[row.id] = row
        return row.model_copy(deep=True)

    async def get_by_code(self, context: SecurityContext, code: str) -> Optional[CouponRead]:
        tenant_id = context.require_tenant()
        for row in self._rows.values():
            if row.tenant_id == tenant_id and row.code == code:
                return row.model_copy(deep=True)
        return None

    async def redeem(self, context: SecurityContext, coupon_id: str, redemption: CouponRedemption) -> CouponUsageRead:
        tenant_id = context.require_tenant()
        coupon = self._find(context, coupon_id)
        if coupon is None:
            raise ReferenceNotFoundError("coupon", coupon_id)
        now = utcnow()
        invariants.ensure_redeemable(
            code=coupon.code,
            status=coupon.status,
            expiry_date=coupon.expiry_date,
            used_count=coupon.used_count,
            max_usage=coupon.max_usage,
            now=now,
        )
        usage = CouponUsageRead(
            id=self._state.next_id("cpu"),
            tenant_id=tenant_id,
            coupon_id=coupon_id,
            created_at=now,
            updated_at=now,
            **redemption.model_dump(),
        )

        self._usages[usage.id] = usage
        self._rows[coupon_id] = coupon.model_copy(update={"used_count": coupon.used_count + 1, "updated_at": now})
        return usage.model_copy(deep=True)

    async def list_usages(self, context: SecurityContext, coupon_id: str) -> List[CouponUsageRead]:
        if self._find(context, coupon_id) is None:
            return []
        rows = [u.model_copy(deep=True) for u in self._usages.values() if u.coupon_id == coupon_id]
        return _newest_first(rows)

    async def delete(self, context: SecurityContext, entity_id: str) -> bool:
        if self._find(context, entity_id) is None:
            return False
        for usage_id in [u.id for u in self._usages.values() if u.coupon_id == entity_id]:
            del self._usages[usage_id]
        del self._rows[entity_id]
        return True


class MemoryStorage(Storage):
    """Every entity kind backed by process memory."""

    name = "memory"

    def __init__(self, state: Optional[MemoryState] = None) -> None:
        self.state = state or MemoryState()
        self.vendors = MemoryVendorStore(self.state)
        self.categories = MemoryCategoryStore(self.state)
        self.customers = MemoryCustomerStore(self.state)
        self.leads = MemoryLeadStore(self.state)
        self.suppliers = MemorySupplierStore(self.state)
        self.supplier_payments = MemorySupplierPaymentStore(self.state)
        self.expenses = MemoryExpenseStore(self.state)
        self.ledger_transactions = MemoryLedgerStore(self.state)
        self.products = MemoryProductStore(self.state)
        self.coupons = MemoryCouponStore(self.state)


__all__ = ["MemoryState", "MemoryStorage"]

"""
Relational backing store.

Every method runs as one unit of work through ScopedExecutor.with_context, so
the connection is stamped with the caller's context for row-level security and
multi-row changes (payment + supplier balance, expense + ledger entry, stock
movement + product stock, coupon usage + counter) commit or roll back together.
Rows updated as a side effect are locked with SELECT ... FOR UPDATE first so
concurrent writers serialize at the database.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from vendorhub.core.errors import InvariantViolation, ReferenceNotFoundError
from vendorhub.db.context import SecurityContext
from vendorhub.db.models import (
    Category,
    Coupon,
    CouponUsage,
    Customer,
    Expense,
    LedgerTransaction,
    Lead,
    Product,
    StockMovement,
    Supplier,
    SupplierPayment,
    Vendor,
)
from vendorhub.db.scoped import ScopedExecutor
from vendorhub.repositories.base import TenantScopedRepository
from vendorhub.repositories.customers import CustomerRepository, LeadRepository
from vendorhub.repositories.finance import (
    ExpenseRepository,
    LedgerRepository,
    SupplierPaymentRepository,
    SupplierRepository,
)
from vendorhub.repositories.inventory import ProductRepository, StockMovementRepository
from vendorhub.repositories.promotions import CouponRepository, CouponUsageRepository
from vendorhub.repositories.tenancy import CategoryRepository, VendorRepository
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
    update_values,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def new_id(prefix: str) -> str:
    """Opaque server-generated id."""
    return f"{prefix}-{uuid.uuid4().hex}"


def _stamp_new(model: Type[Any], prefix: str, values: Dict[str, Any], **owner: Any) -> Any:
    now = utcnow()
    return model(**values, **owner, id=new_id(prefix), created_at=now, updated_at=now)


def _apply_changes(row: Any, values: Dict[str, Any]) -> None:
    for name, value in values.items():
        setattr(row, name, value)
    row.updated_at = utcnow()


class RelationalEntityStore(EntityStore[E, C, U, F]):
    """Generic tenant-owned entity stored in one table."""

    model: Type[Any]
    read_model: Type[BaseModel]
    repository_cls: Type[TenantScopedRepository]
    id_prefix: str

    def __init__(self, executor: ScopedExecutor) -> None:
        self._executor = executor

    def _repo(self, session: AsyncSession) -> Any:
        return self.repository_cls(session, search_fields=self.search_fields, date_field=self.date_field)

    def _read(self, row: Any) -> Any:
        return self.read_model.model_validate(row)

    def _build(self, values: Dict[str, Any], **owner: Any) -> Any:
        return _stamp_new(self.model, self.id_prefix, values, **owner)

    async def _run(self, context: SecurityContext, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        return await self._executor.with_context(context, work)

    async def get(self, context: SecurityContext, entity_id: str) -> Optional[E]:
        async def work(session: AsyncSession):
            row = await self._repo(session).get(context, entity_id)
            return None if row is None else self._read(row)

        return await self._run(context, work)

    async def list_by_tenant(self, context: SecurityContext, tenant_id: str, filters: Optional[F] = None) -> List[E]:
        ensure_tenant_scope(context, tenant_id)

        async def work(session: AsyncSession):
            rows = await self._repo(session).list_owned_by(context, [tenant_id], filters)
            return [self._read(r) for r in rows]

        return await self._run(context, work)

    async def list_for_tenants(
        self, context: SecurityContext, tenant_ids: Sequence[str], filters: Optional[F] = None
    ) -> List[E]:
        context.require_admin()
        if not tenant_ids:
            return []

        async def work(session: AsyncSession):
            rows = await self._repo(session).list_owned_by(context, tenant_ids, filters)
            return [self._read(r) for r in rows]

        return await self._run(context, work)

    async def create(self, context: SecurityContext, payload: C) -> E:
        tenant_id = context.require_tenant()

        async def work(session: AsyncSession):
            row = self._build(payload.model_dump(), tenant_id=tenant_id)
            await self._repo(session).add(row)
            return self._read(row)

        return await self._run(context, work)

    async def update(self, context: SecurityContext, entity_id: str, changes: U) -> Optional[E]:
        values = update_values(changes, self.read_model)

        async def work(session: AsyncSession):
            row = await self._repo(session).get(context, entity_id, for_update=True)
            if row is None:
                return None
            _apply_changes(row, values)
            await session.flush()
            return self._read(row)

        return await self._run(context, work)

    async def delete(self, context: SecurityContext, entity_id: str) -> bool:
        async def work(session: AsyncSession):
            repo = self._repo(session)
            row = await repo.get(context, entity_id, for_update=True)
            if row is None:
                return False
            await repo.remove(row)
            return True

        return await self._run(context, work)


class RelationalVendorStore(RelationalEntityStore, VendorStore):
    model = Vendor
    read_model = VendorRead
    repository_cls = VendorRepository
    id_prefix = "vnd"

    async def create(self, context: SecurityContext, payload: VendorCreate) -> VendorRead:
        context.require_admin()

        async def work(session: AsyncSession):
            row = self._build(payload.model_dump())
            await self._repo(session).add(row)
            logger.info("Vendor registered vendor_id=%s", row.id)
            return self._read(row)

        return await self._run(context, work)

    async def update(self, context: SecurityContext, entity_id: str, changes: VendorUpdate) -> Optional[VendorRead]:
        values = update_values(changes, self.read_model)

        async def work(session: AsyncSession):
            row = await self._repo(session).get(context, entity_id, for_update=True)
            if row is None:
                return None
            invariants.ensure_vendor_writable(context, entity_id, values)
            _apply_changes(row, values)
            await session.flush()
            return self._read(row)

        return await self._run(context, work)

    async def delete(self, context: SecurityContext, entity_id: str) -> bool:
        context.require_admin()
        return await super().delete(context, entity_id)

    async def list_all(self, context: SecurityContext, filters: Optional[VendorFilter] = None) -> List[VendorRead]:
        context.require_admin()

        async def work(session: AsyncSession):
            return [self._read(r) for r in await self._repo(session).list_visible(context, filters)]

        return await self._run(context, work)


class RelationalCategoryStore(RelationalEntityStore, CategoryStore):
    model = Category
    read_model = CategoryRead
    repository_cls = CategoryRepository
    id_prefix = "cat"

    async def list_visible(self, context: SecurityContext, filters: Optional[CategoryFilter] = None) -> List[CategoryRead]:
        async def work(session: AsyncSession):
            return [self._read(r) for r in await self._repo(session).list_visible(context, filters)]

        return await self._run(context, work)

    async def create(self, context: SecurityContext, payload: CategoryCreate) -> CategoryRead:
        created_by = invariants.category_creator(context, payload.is_global)

        async def work(session: AsyncSession):
            row = self._build(payload.model_dump(), created_by=created_by)
            await self._repo(session).add(row)
            return self._read(row)

        return await self._run(context, work)

    async def update(self, context: SecurityContext, entity_id: str, changes: CategoryUpdate) -> Optional[CategoryRead]:
        values = update_values(changes, self.read_model)

        async def work(session: AsyncSession):
            row = await self._repo(session).get(context, entity_id, for_update=True)
            if row is None:
                return None
            invariants.ensure_category_writable(
                context, is_global=row.is_global, created_by=row.created_by, changes=values
            )
            _apply_changes(row, values)
            await session.flush()
            return self._read(row)

        return await self._run(context, work)

    async def delete(self, context: SecurityContext, entity_id: str) -> bool:
        async def work(session: AsyncSession):
            repo = self._repo(session)
            row = await repo.get(context, entity_id, for_update=True)
            if row is None:
                return False
            invariants.ensure_category_writable(context, is_global=row.is_global, created_by=row.created_by)
            await repo.remove(row)
            return True

        return await self._run(context, work)


class RelationalCustomerStore(RelationalEntityStore, CustomerStore):
    model = Customer
    read_model = CustomerRead
    repository_cls = CustomerRepository
    id_prefix = "cus"


class RelationalLeadStore(RelationalEntityStore, LeadStore):
    model = Lead
    read_model = LeadRead
    repository_cls = LeadRepository
    id_prefix = "lead"


class RelationalSupplierStore(RelationalEntityStore, SupplierStore):
    model = Supplier
    read_model = SupplierRead
    repository_cls = SupplierRepository
    id_prefix = "sup"

    async def delete(self, context: SecurityContext, entity_id: str) -> bool:
        async def work(session: AsyncSession):
            repo = self._repo(session)
            row = await repo.get(context, entity_id, for_update=True)
            if row is None:
                return False
            await SupplierPaymentRepository(session).delete_for_supplier(context, entity_id)
            await repo.remove(row)
            return True

        return await self._run(context, work)


class RelationalSupplierPaymentStore(RelationalEntityStore, SupplierPaymentStore):
    model = SupplierPayment
    read_model = SupplierPaymentRead
    repository_cls = SupplierPaymentRepository
    id_prefix = "spay"

    async def create(self, context: SecurityContext, payload: SupplierPaymentCreate) -> SupplierPaymentRead:
        tenant_id = context.require_tenant()

        async def work(session: AsyncSession):
            supplier = await SupplierRepository(session).get(context, payload.supplier_id, for_update=True)
            if supplier is None:
                raise ReferenceNotFoundError("supplier", payload.supplier_id)
            balance, applied = invariants.apply_payment(supplier.outstanding_balance, payload.amount)
            row = self._build(payload.model_dump(), tenant_id=tenant_id, applied_amount=applied)
            _apply_changes(supplier, {"outstanding_balance": balance, "last_transaction_date": row.payment_date})
            await self._repo(session).add(row)
            return self._read(row)

        return await self._run(context, work)

    async def update(
        self, context: SecurityContext, entity_id: str, changes: SupplierPaymentUpdate
    ) -> Optional[SupplierPaymentRead]:
        values = update_values(changes, self.read_model)

        async def work(session: AsyncSession):
            row = await self._repo(session).get(context, entity_id, for_update=True)
            if row is None:
                return None
            if "amount" in values:
                supplier = await SupplierRepository(session).get(context, row.supplier_id, for_update=True)
                if supplier is not None:
                    restored = invariants.revert_payment(supplier.outstanding_balance, row.applied_amount)
                    balance, applied = invariants.apply_payment(restored, values["amount"])
                    _apply_changes(supplier, {"outstanding_balance": balance})
                    values["applied_amount"] = applied
            _apply_changes(row, values)
            await session.flush()
            return self._read(row)

        return await self._run(context, work)

    async def delete(self, context: SecurityContext, entity_id: str) -> bool:
        async def work(session: AsyncSession):
            repo = self._repo(session)
            row = await repo.get(context, entity_id, for_update=True)
            if row is None:
                return False
            supplier = await SupplierRepository(session).get(context, row.supplier_id, for_update=True)
            if supplier is not None:
                _apply_changes(
                    supplier,
                    {"outstanding_balance": invariants.revert_payment(supplier.outstanding_balance, row.applied_amount)},
                )
            await repo.remove(row)
            return True

        return await self._run(context, work)


class RelationalLedgerStore(RelationalEntityStore, LedgerStore):
    model = LedgerTransaction
    read_model = LedgerTransactionRead
    repository_cls = LedgerRepository
    id_prefix = "txn"

    async def create(self, context: SecurityContext, payload: LedgerTransactionCreate) -> LedgerTransactionRead:
        invariants.ensure_not_expense_owned(payload.reference_type, "new")
        return await super().create(context, payload)

    async def update(
        self, context: SecurityContext, entity_id: str, changes: LedgerTransactionUpdate
    ) -> Optional[LedgerTransactionRead]:
        values = update_values(changes, self.read_model)

        async def work(session: AsyncSession):
            row = await self._repo(session).get(context, entity_id, for_update=True)
            if row is None:
                return None
            invariants.ensure_not_expense_owned(row.reference_type, entity_id)
            _apply_changes(row, values)
            await session.flush()
            return self._read(row)

        return await self._run(context, work)

    async def delete(self, context: SecurityContext, entity_id: str) -> bool:
        async def work(session: AsyncSession):
            repo = self._repo(session)
            row = await repo.get(context, entity_id, for_update=True)
            if row is None:
                return False
            invariants.ensure_not_expense_owned(row.reference_type, entity_id)
            await repo.remove(row)
            return True

        return await self._run(context, work)


class RelationalExpenseStore(RelationalEntityStore, ExpenseStore):
    model = Expense
    read_model = ExpenseRead
    repository_cls = ExpenseRepository
    id_prefix = "exp"

    async def create(self, context: SecurityContext, payload: ExpenseCreate) -> ExpenseRead:
        tenant_id = context.require_tenant()
        values = payload.model_dump()

        async def work(session: AsyncSession):
            expense = self._build(values, tenant_id=tenant_id)
            entry = _stamp_new(
                LedgerTransaction,
                RelationalLedgerStore.id_prefix,
                invariants.expense_ledger_values(expense.id, values),
                tenant_id=tenant_id,
            )
            expense.ledger_transaction_id = entry.id
            await LedgerRepository(session).add(entry)
            await self._repo(session).add(expense)
            return self._read(expense)

        return await self._run(context, work)

    async def update(self, context: SecurityContext, entity_id: str, changes: ExpenseUpdate) -> Optional[ExpenseRead]:
        values = update_values(changes, self.read_model)

        async def work(session: AsyncSession):
            ledger = LedgerRepository(session)
            expense = await self._repo(session).get(context, entity_id, for_update=True)
            if expense is None:
                return None
            _apply_changes(expense, values)
            current = self._read(expense).model_dump()
            entry_values = invariants.expense_ledger_values(expense.id, current)

            entry = None
            if expense.ledger_transaction_id:
                entry = await ledger.get(context, expense.ledger_transaction_id, for_update=True)
            if entry is None:
                entry = _stamp_new(
                    LedgerTransaction, RelationalLedgerStore.id_prefix, entry_values, tenant_id=expense.tenant_id
                )
                await ledger.add(entry)
                expense.ledger_transaction_id = entry.id
            else:
                _apply_changes(entry, entry_values)
            await session.flush()
            return self._read(expense)

        return await self._run(context, work)

    async def delete(self, context: SecurityContext, entity_id: str) -> bool:
        async def work(session: AsyncSession):
            ledger = LedgerRepository(session)
            repo = self._repo(session)
            expense = await repo.get(context, entity_id, for_update=True)
            if expense is None:
                return False
            entries = await ledger.list_for_reference(context, invariants.EXPENSE_REFERENCE, entity_id)
            await repo.remove(expense)
            for entry in entries:
                await ledger.remove(entry)
            return True

        return await self._run(context, work)


class RelationalProductStore(RelationalEntityStore, ProductStore):
    model = Product
    read_model = ProductRead
    repository_cls = ProductRepository
    id_prefix = "prd"

    async def _record(
        self, context: SecurityContext, product_id: str, movement_type: str, request: StockMovementRequest
    ) -> Optional[StockMovementResult]:
        context.require_tenant()

        async def work(session: AsyncSession):
            product = await self._repo(session).get(context, product_id, for_update=True)
            if product is None:
                return None
            previous = product.stock
            new_stock, signed = invariants.stock_after(previous, movement_type, request.quantity)
            movement = _stamp_new(
                StockMovement,
                "mov",
                {
                    "product_id": product_id,
                    "movement_type": movement_type,
                    "quantity": signed,
                    "previous_stock": previous,
                    "new_stock": new_stock,
                    "reason": request.reason or ("Stock In" if movement_type == invariants.STOCK_IN else "Stock Out"),
                    "reference_type": request.reference_type,
                    "reference_id": request.reference_id,
                    "performed_by": context.actor_id,
                },
                tenant_id=product.tenant_id,
            )
            _apply_changes(product, {"stock": new_stock})
            await StockMovementRepository(session).add(movement)
            return StockMovementResult(movement=StockMovementRead.model_validate(movement), new_stock=new_stock)

        return await self._run(context, work)

    async def record_stock_in(
        self, context: SecurityContext, product_id: str, request: StockMovementRequest
    ) -> Optional[StockMovementResult]:
        return await self._record(context, product_id, invariants.STOCK_IN, request)

    async def record_stock_out(
        self, context: SecurityContext, product_id: str, request: StockMovementRequest
    ) -> Optional[StockMovementResult]:
        return await self._record(context, product_id, invariants.STOCK_OUT, request)

    async def list_movements(self, context: SecurityContext, product_id: str) -> List[StockMovementRead]:
        async def work(session: AsyncSession):
            rows = await StockMovementRepository(session).list_for_product(context, product_id)
            return [StockMovementRead.model_validate(r) for r in rows]

        return await self._run(context, work)

    async def delete(self, context: SecurityContext, entity_id: str) -> bool:
        async def work(session: AsyncSession):
            repo = self._repo(session)
            row = await repo.get(context, entity_id, for_update=True)
            if row is None:
                return False
            await StockMovementRepository(session).delete_for_product(context, entity_id)
            await repo.remove(row)
            return True

        return await self._run(context, work)


class RelationalCouponStore(RelationalEntityStore, CouponStore):
    model = Coupon
    read_model = CouponRead
    repository_cls = CouponRepository
    id_prefix = "cpn"

    async def create(self, context: SecurityContext, payload: CouponCreate) -> CouponRead:
        tenant_id = context.require_tenant()

        async def work(session: AsyncSession):
            repo = self._repo(session)
            if await repo.get_by_code(context, payload.code) is not None:
                raise InvariantViolation(f"coupon code '{payload.code}' already exists")
            row = self._build(payload.model_dump(), tenant_id=tenant_id, used_count=0)
            await repo.add(row)
            return self._read(row)

        return await self._run(context, work)

    async def get_by_code(self, context: SecurityContext, code: str) -> Optional[CouponRead]:
        context.require_tenant()

        async def work(session: AsyncSession):
            row = await self._repo(session).get_by_code(context, code)
            return None if row is None else self._read(row)

        return await self._run(context, work)

    async def redeem(self, context: SecurityContext, coupon_id: str, redemption: CouponRedemption) -> CouponUsageRead:
        tenant_id = context.require_tenant()

        async def work(session: AsyncSession):
            coupon = await self._repo(session).get(context, coupon_id, for_update=True)
            if coupon is None:
                raise ReferenceNotFoundError("coupon", coupon_id)
            current = self._read(coupon)
            invariants.ensure_redeemable(
                code=current.code,
                status=current.status,
                expiry_date=current.expiry_date,
                used_count=current.used_count,
                max_usage=current.max_usage,
                now=utcnow(),
            )
            usage = _stamp_new(CouponUsage, "cpu", redemption.model_dump(), tenant_id=tenant_id, coupon_id=coupon_id)
            _apply_changes(coupon, {"used_count": current.used_count + 1})
            await CouponUsageRepository(session).add(usage)
            return CouponUsageRead.model_validate(usage)

        return await self._run(context, work)

    async def list_usages(self, context: SecurityContext, coupon_id: str) -> List[CouponUsageRead]:
        async def work(session: AsyncSession):
            rows = await CouponUsageRepository(session).list_for_coupon(context, coupon_id)
            return [CouponUsageRead.model_validate(r) for r in rows]

        return await self._run(context, work)

    async def delete(self, context: SecurityContext, entity_id: str) -> bool:
        async def work(session: AsyncSession):
            repo = self._repo(session)
            row = await repo.get(context, entity_id, for_update=True)
            if row is None:
                return False
            await CouponUsageRepository(session).delete_for_coupon(context, entity_id)
            await repo.remove(row)
            return True

        return await self._run(context, work)


class RelationalStorage(Storage):
    """Every entity kind backed by the database through one ScopedExecutor."""

    name = "database"

    def __init__(self, executor: ScopedExecutor) -> None:
        self.executor = executor
        self.vendors = RelationalVendorStore(executor)
        self.categories = RelationalCategoryStore(executor)
        self.customers = RelationalCustomerStore(executor)
        self.leads = RelationalLeadStore(executor)
        self.suppliers = RelationalSupplierStore(executor)
        self.supplier_payments = RelationalSupplierPaymentStore(executor)
        self.expenses = RelationalExpenseStore(executor)
        self.ledger_transactions = RelationalLedgerStore(executor)
        self.products = RelationalProductStore(executor)
        self.coupons = RelationalCouponStore(executor)

    async def close(self) -> None:
        await self.executor.pool.dispose()

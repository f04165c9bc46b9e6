"""
Storage abstraction: the capability interface every backing store implements.

Every call takes the caller's SecurityContext first. The generic EntityStore
covers get/list/create/update/delete; per-entity stores add the queries and
derived-invariant operations of their entity. Callers (HTTP routes, background
jobs, the admin service) only ever see a Storage, never a concrete backend.

Contract shared by all implementations:
  - create always generates id/created_at/updated_at and is not idempotent
  - update/delete of a missing or invisible id return None/False
  - tenant-scoped lists never return another tenant's rows, whatever the filter
"""

from __future__ import annotations

import abc
import enum
from datetime import datetime
from typing import Any, Dict, FrozenSet, Generic, Iterable, List, Optional, Sequence, Tuple, Type, TypeVar, get_args

from pydantic import BaseModel

from vendorhub.core.errors import AccessDeniedError
from vendorhub.db.context import SecurityContext
from vendorhub.schemas.customers import (
    CustomerCreate,
    CustomerFilter,
    CustomerRead,
    CustomerUpdate,
    LeadCreate,
    LeadFilter,
    LeadRead,
    LeadUpdate,
)
from vendorhub.schemas.finance import (
    CustomerBalance,
    ExpenseCreate,
    ExpenseFilter,
    ExpenseRead,
    ExpenseUpdate,
    LedgerSummary,
    LedgerTransactionCreate,
    LedgerTransactionFilter,
    LedgerTransactionRead,
    LedgerTransactionUpdate,
    SupplierCreate,
    SupplierFilter,
    SupplierPaymentCreate,
    SupplierPaymentFilter,
    SupplierPaymentRead,
    SupplierPaymentUpdate,
    SupplierRead,
    SupplierUpdate,
)
from vendorhub.schemas.inventory import (
    ProductCreate,
    ProductFilter,
    ProductRead,
    ProductUpdate,
    StockMovementRead,
    StockMovementRequest,
    StockMovementResult,
)
from vendorhub.schemas.promotions import (
    CouponCreate,
    CouponFilter,
    CouponRead,
    CouponRedemption,
    CouponUpdate,
    CouponUsageRead,
)
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

E = TypeVar("E", bound=BaseModel)
C = TypeVar("C", bound=BaseModel)
U = TypeVar("U", bound=BaseModel)
F = TypeVar("F", bound=BaseModel)

_RANGE_FIELDS = frozenset({"search", "date_from", "date_to"})


class EntityKind(str, enum.Enum):
    """Entity kinds the router can assign to a backing store."""
    VENDORS = "vendors"
    CATEGORIES = "categories"
    CUSTOMERS = "customers"
    LEADS = "leads"
    SUPPLIERS = "suppliers"
    SUPPLIER_PAYMENTS = "supplier_payments"
    EXPENSES = "expenses"
    LEDGER_TRANSACTIONS = "ledger_transactions"
    PRODUCTS = "products"
    COUPONS = "coupons"


# Kinds whose derived invariants touch each other's rows in one transaction;
# each group must be owned by a single backing store.
COUPLED_KINDS: Tuple[FrozenSet[EntityKind], ...] = (
    frozenset({EntityKind.SUPPLIERS, EntityKind.SUPPLIER_PAYMENTS}),
    frozenset({EntityKind.EXPENSES, EntityKind.LEDGER_TRANSACTIONS}),
)


# Update helpers


def _accepts_none(read_model: Type[BaseModel], name: str) -> bool:
    field = read_model.model_fields.get(name)
    return field is not None and type(None) in get_args(field.annotation)


def update_values(changes: BaseModel, read_model: Type[BaseModel]) -> Dict[str, Any]:
    """
    Fields set on a partial update.

    An explicit None clears a field only where the read model allows None; on a
    required field it means "leave unchanged", so both backends merge the same
    values and never write NULL into a required column.
    """
    return {
        name: value
        for name, value in changes.model_dump(exclude_unset=True).items()
        if value is not None or _accepts_none(read_model, name)
    }


# Filter helpers


def filter_equalities(filters: Optional[BaseModel]) -> Dict[str, Any]:
    """Equality constraints carried by a filter (every set field except search/date range)."""
    if filters is None:
        return {}
    return {
        name: value
        for name, value in filters.model_dump(exclude_none=True).items()
        if name not in _RANGE_FIELDS
    }


def contains_text(values: Iterable[Any], needle: str) -> bool:
    """Case-insensitive substring match over any of `values`."""
    needle = needle.lower()
    return any(needle in str(value).lower() for value in values if value is not None)


def within_dates(value: Optional[datetime], date_from: Optional[datetime], date_to: Optional[datetime]) -> bool:
    if date_from is None and date_to is None:
        return True
    if value is None:
        return False
    if date_from is not None and value < date_from:
        return False
    if date_to is not None and value > date_to:
        return False
    return True


def matches_filters(
    row: BaseModel,
    filters: Optional[BaseModel],
    *,
    search_fields: Sequence[str] = (),
    date_field: str = "created_at",
) -> bool:
    """In-process evaluation of a filter model against one read model."""
    if filters is None:
        return True
    for name, expected in filter_equalities(filters).items():
        if getattr(row, name) != expected:
            return False
    search = getattr(filters, "search", None)
    if search and not contains_text((getattr(row, f) for f in search_fields), search):
        return False
    return within_dates(
        getattr(row, date_field),
        getattr(filters, "date_from", None),
        getattr(filters, "date_to", None),
    )


def ensure_tenant_scope(context: SecurityContext, tenant_id: str) -> None:
    """A tenant may only list its own rows; admins may list any single tenant."""
    if context.is_admin:
        return
    if context.require_tenant() != tenant_id:
        raise AccessDeniedError("cannot list rows of another vendor")


class EntityStore(abc.ABC, Generic[E, C, U, F]):
    """
    Uniform CRUD contract for one entity kind.

    `owner_field` names the attribute that identifies the owning tenant
    (tenant_id for most entities, id for vendors, created_by for categories).
    """

    kind: EntityKind
    owner_field: str = "tenant_id"
    search_fields: Tuple[str, ...] = ()
    date_field: str = "created_at"

    @abc.abstractmethod
    async def get(self, context: SecurityContext, entity_id: str) -> Optional[E]:
        """Return the entity, or None when missing or not visible to `context`."""

    @abc.abstractmethod
    async def list_by_tenant(
        self, context: SecurityContext, tenant_id: str, filters: Optional[F] = None
    ) -> List[E]:
        """Entities owned by `tenant_id`, newest first."""

    @abc.abstractmethod
    async def list_for_tenants(
        self, context: SecurityContext, tenant_ids: Sequence[str], filters: Optional[F] = None
    ) -> List[E]:
        """Admin only: entities owned by any of `tenant_ids` (an empty list yields nothing)."""

    @abc.abstractmethod
    async def create(self, context: SecurityContext, payload: C) -> E:
        """Create a new entity owned by the context's tenant."""

    @abc.abstractmethod
    async def update(self, context: SecurityContext, entity_id: str, changes: U) -> Optional[E]:
        """Merge the fields set on `changes`; always refreshes updated_at."""

    @abc.abstractmethod
    async def delete(self, context: SecurityContext, entity_id: str) -> bool:
        """True when a row was removed."""


class VendorStore(EntityStore[VendorRead, VendorCreate, VendorUpdate, VendorFilter]):
    kind = EntityKind.VENDORS
    owner_field = "id"
    search_fields = ("business_name", "owner_name", "email", "phone")

    @abc.abstractmethod
    async def list_all(self, context: SecurityContext, filters: Optional[VendorFilter] = None) -> List[VendorRead]:
        """Admin only: every registered vendor."""


class CategoryStore(EntityStore[CategoryRead, CategoryCreate, CategoryUpdate, CategoryFilter]):
    kind = EntityKind.CATEGORIES
    owner_field = "created_by"
    search_fields = ("name",)

    @abc.abstractmethod
    async def list_visible(self, context: SecurityContext, filters: Optional[CategoryFilter] = None) -> List[CategoryRead]:
        """Global categories plus the ones authored by the context's tenant."""

    async def list_by_creator(self, context: SecurityContext, creator_id: str) -> List[CategoryRead]:
        """Visible categories authored by `creator_id`."""
        return [c for c in await self.list_visible(context) if c.created_by == creator_id]


class CustomerStore(EntityStore[CustomerRead, CustomerCreate, CustomerUpdate, CustomerFilter]):
    kind = EntityKind.CUSTOMERS
    search_fields = ("name", "phone", "email", "company", "city")

    async def search(self, context: SecurityContext, query: str) -> List[CustomerRead]:
        tenant_id = context.require_tenant()
        return await self.list_by_tenant(context, tenant_id, CustomerFilter(search=query))

    async def get_by_phone(self, context: SecurityContext, phone: str) -> Optional[CustomerRead]:
        tenant_id = context.require_tenant()
        rows = await self.list_by_tenant(context, tenant_id, CustomerFilter(phone=phone))
        return rows[0] if rows else None


class LeadStore(EntityStore[LeadRead, LeadCreate, LeadUpdate, LeadFilter]):
    kind = EntityKind.LEADS
    search_fields = ("name", "phone", "email", "company")


class SupplierStore(EntityStore[SupplierRead, SupplierCreate, SupplierUpdate, SupplierFilter]):
    """Deleting a supplier also deletes its payments."""
    kind = EntityKind.SUPPLIERS
    search_fields = ("name", "business_name", "phone", "email")

    async def search(self, context: SecurityContext, query: str) -> List[SupplierRead]:
        tenant_id = context.require_tenant()
        return await self.list_by_tenant(context, tenant_id, SupplierFilter(search=query))


class SupplierPaymentStore(
    EntityStore[SupplierPaymentRead, SupplierPaymentCreate, SupplierPaymentUpdate, SupplierPaymentFilter]
):
    """
    Payments keep the supplier's outstanding balance in step: create applies the
    payment, update re-applies it, delete reverts it, each in one transaction.
    Creating a payment for an unknown supplier raises ReferenceNotFoundError.
    """
    kind = EntityKind.SUPPLIER_PAYMENTS
    search_fields = ("description",)
    date_field = "payment_date"

    async def list_by_supplier(self, context: SecurityContext, supplier_id: str) -> List[SupplierPaymentRead]:
        tenant_id = context.require_tenant()
        return await self.list_by_tenant(context, tenant_id, SupplierPaymentFilter(supplier_id=supplier_id))


class ExpenseStore(EntityStore[ExpenseRead, ExpenseCreate, ExpenseUpdate, ExpenseFilter]):
    """Every expense owns exactly one ledger 'out' entry, created, updated and deleted with it."""
    kind = EntityKind.EXPENSES
    search_fields = ("title", "description")
    date_field = "expense_date"


class LedgerStore(
    EntityStore[LedgerTransactionRead, LedgerTransactionCreate, LedgerTransactionUpdate, LedgerTransactionFilter]
):
    """Entries owned by an expense cannot be created, updated or deleted directly (LinkedRecordError)."""
    kind = EntityKind.LEDGER_TRANSACTIONS
    search_fields = ("description",)
    date_field = "transaction_date"

    async def summary(
        self, context: SecurityContext, filters: Optional[LedgerTransactionFilter] = None
    ) -> LedgerSummary:
        tenant_id = context.require_tenant()
        return invariants.summarize_ledger(await self.list_by_tenant(context, tenant_id, filters))

    async def customer_balance(self, context: SecurityContext, customer_id: str) -> CustomerBalance:
        tenant_id = context.require_tenant()
        entries = await self.list_by_tenant(context, tenant_id, LedgerTransactionFilter(customer_id=customer_id))
        return invariants.customer_balance(customer_id, entries)


class ProductStore(EntityStore[ProductRead, ProductCreate, ProductUpdate, ProductFilter]):
    """Stock changes only through movements; deleting a product deletes its movements."""
    kind = EntityKind.PRODUCTS
    search_fields = ("name", "brand", "category")

    @abc.abstractmethod
    async def record_stock_in(
        self, context: SecurityContext, product_id: str, request: StockMovementRequest
    ) -> Optional[StockMovementResult]:
        """Add stock; None when the product does not exist."""

    @abc.abstractmethod
    async def record_stock_out(
        self, context: SecurityContext, product_id: str, request: StockMovementRequest
    ) -> Optional[StockMovementResult]:
        """Remove stock, flooring at zero; None when the product does not exist."""

    @abc.abstractmethod
    async def list_movements(self, context: SecurityContext, product_id: str) -> List[StockMovementRead]:
        """Movements of one product, newest first."""


class CouponStore(EntityStore[CouponRead, CouponCreate, CouponUpdate, CouponFilter]):
    """Codes are unique per vendor; deleting a coupon deletes its usages."""
    kind = EntityKind.COUPONS
    search_fields = ("code", "description")

    @abc.abstractmethod
    async def get_by_code(self, context: SecurityContext, code: str) -> Optional[CouponRead]:
        """Coupon of the context's tenant with this code."""

    @abc.abstractmethod
    async def redeem(
        self, context: SecurityContext, coupon_id: str, redemption: CouponRedemption
    ) -> CouponUsageRead:
        """
        Record one usage and increment used_count in the same transaction.

        Raises:
            ReferenceNotFoundError: coupon does not exist for this tenant.
            CouponNotRedeemableError: inactive, expired, or at max_usage.
        """

    @abc.abstractmethod
    async def list_usages(self, context: SecurityContext, coupon_id: str) -> List[CouponUsageRead]:
        """Usages of one coupon, newest first."""


class Storage(abc.ABC):
    """
    The full capability set: one store per entity kind.

    Attribute names equal EntityKind values so `store(kind)` can resolve them.
    """

    name: str = "storage"

    vendors: VendorStore
    categories: CategoryStore
    customers: CustomerStore
    leads: LeadStore
    suppliers: SupplierStore
    supplier_payments: SupplierPaymentStore
    expenses: ExpenseStore
    ledger_transactions: LedgerStore
    products: ProductStore
    coupons: CouponStore

    def store(self, kind: EntityKind) -> EntityStore:
        return getattr(self, EntityKind(kind).value)

    async def close(self) -> None:
        """Release backend resources; a no-op unless the backend holds any."""

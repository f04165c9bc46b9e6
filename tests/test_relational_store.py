"""Relational store behaviour that the memory store has no counterpart for."""
from __future__ import annotations

import re

import pytest

from vendorhub.core.errors import ReferenceNotFoundError
from vendorhub.db.context import SecurityContext, read_session_context
from vendorhub.db.scoped import ScopedExecutor
from vendorhub.repositories.finance import SupplierPaymentRepository
from vendorhub.schemas.customers import CustomerCreate
from vendorhub.schemas.finance import SupplierCreate, SupplierPaymentCreate
from vendorhub.storage.relational import RelationalStorage, new_id


class TestIds:
    def test_new_id_is_opaque_and_prefixed(self):
        value = new_id("cus")
        assert re.fullmatch(r"cus-[0-9a-f]{32}", value)
        assert new_id("cus") != value

    async def test_created_rows_use_generated_ids(self, database_storage, tenant_a):
        created = await database_storage.customers.create(tenant_a, CustomerCreate(name="A", phone="1"))
        assert created.id.startswith("cus-")


class TestConnectionReuse:
    async def test_tenants_sharing_one_connection_stay_isolated(self, pool_factory, sqlite_pool):
        # Schema exists on the shared file; this pool holds exactly one connection.
        pool = pool_factory(pool_size=1, max_overflow=0)
        storage = RelationalStorage(ScopedExecutor(pool))
        a = SecurityContext.for_tenant("vendor-a")
        b = SecurityContext.for_tenant("vendor-b")

        created = await storage.customers.create(a, CustomerCreate(name="Only A", phone="1"))
        assert await storage.customers.get(b, created.id) is None
        assert await storage.customers.list_by_tenant(b, "vendor-b") == []
        assert (await storage.customers.get(a, created.id)).name == "Only A"

        pooled = await pool.acquire()
        try:
            assert (await read_session_context(pooled.connection))["tenant_id"] is None
        finally:
            await pooled.release()

    async def test_connections_return_to_pool_after_errors(self, database_storage, sqlite_pool, tenant_a):
        with pytest.raises(ReferenceNotFoundError):
            await database_storage.supplier_payments.create(
                tenant_a, SupplierPaymentCreate(supplier_id="missing", amount=1, payment_mode="cash")
            )
        assert sqlite_pool.status().get("checkedout", 0) == 0


class TestAtomicity:
    async def test_failed_payment_leaves_balance_untouched(self, database_storage, tenant_a, monkeypatch):
        supplier = await database_storage.suppliers.create(
            tenant_a, SupplierCreate(name="Mill", phone="1", outstanding_balance=1000)
        )

        async def failing_add(self, entity):
            raise RuntimeError("insert failed")

        # The balance is changed on the supplier row before the payment row is added.
        monkeypatch.setattr(SupplierPaymentRepository, "add", failing_add)
        with pytest.raises(RuntimeError):
            await database_storage.supplier_payments.create(
                tenant_a, SupplierPaymentCreate(supplier_id=supplier.id, amount=300, payment_mode="cash")
            )
        monkeypatch.undo()

        refreshed = await database_storage.suppliers.get(tenant_a, supplier.id)
        assert refreshed.outstanding_balance == 1000
        assert refreshed.last_transaction_date is None
        assert await database_storage.supplier_payments.list_by_tenant(tenant_a, "vendor-a") == []

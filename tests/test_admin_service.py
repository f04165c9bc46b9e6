"""Tests for cross-vendor admin aggregation."""
from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError

from vendorhub.core.errors import AccessDeniedError
from vendorhub.db.context import SecurityContext
from vendorhub.schemas.admin import AdminQuery, CustomerAdminQuery, LeadAdminQuery
from vendorhub.schemas.customers import CustomerCreate, LeadCreate
from vendorhub.schemas.tenancy import VendorCreate
from vendorhub.services.admin import AdminAggregationService


@pytest.fixture
async def vendors(storage, admin):
    gym = await storage.vendors.create(admin, VendorCreate(business_name="Gym", category="Fitness Centers"))
    cafe = await storage.vendors.create(admin, VendorCreate(business_name="Cafe", category="Restaurants"))
    salon = await storage.vendors.create(admin, VendorCreate(business_name="Salon", category="Beauty Salons"))
    return {"gym": gym.id, "cafe": cafe.id, "salon": salon.id}


@pytest.fixture
async def seeded(storage, vendors):
    leads = {
        "gym": [
            LeadCreate(name="Arjun", phone="1", status="new", source="website", priority="high", lead_score=90),
            LeadCreate(name="Bina", phone="2", status="contacted", source="referral", lead_score=40),
            LeadCreate(name="Chetan", phone="3", status="new", source="website"),
        ],
        "cafe": [
            LeadCreate(name="Deepa", phone="4", status="new", source="website", lead_score=70, email="deepa@x.io"),
        ],
        "salon": [
            LeadCreate(name="Esha", phone="5", status="new", source="website", lead_score=99),
        ],
    }
    for key, payloads in leads.items():
        ctx = SecurityContext.for_tenant(vendors[key])
        for payload in payloads:
            await storage.leads.create(ctx, payload)
        await storage.customers.create(ctx, CustomerCreate(name=f"{key} customer", phone="9", city="Pune"))
    return vendors


class TestAccess:
    async def test_tenant_context_is_rejected(self, storage, tenant_a):
        service = AdminAggregationService(storage)
        with pytest.raises(AccessDeniedError):
            await service.search_leads(tenant_a, LeadAdminQuery(tenant_ids=["vendor-a"]))
        with pytest.raises(AccessDeniedError):
            await service.search(tenant_a, CustomerAdminQuery(tenant_ids=["vendor-a"]))

    def test_tenant_ids_are_required(self):
        with pytest.raises(ValidationError):
            LeadAdminQuery()

    def test_unknown_fields_and_sort_keys_are_rejected(self):
        with pytest.raises(ValidationError):
            LeadAdminQuery(tenant_ids=["a"], tenant="b")
        with pytest.raises(ValidationError):
            LeadAdminQuery(tenant_ids=["a"], sort_by="password")
        with pytest.raises(ValidationError):
            LeadAdminQuery(tenant_ids=["a"], limit=501)


class TestLeadSearch:
    async def test_only_listed_vendors(self, storage, admin, seeded):
        service = AdminAggregationService(storage)
        page = await service.search_leads(admin, LeadAdminQuery(tenant_ids=[seeded["gym"], seeded["cafe"]]))
        assert page.total == 4
        assert {lead.tenant_id for lead in page.items} == {seeded["gym"], seeded["cafe"]}

    async def test_empty_allow_list(self, storage, admin, seeded):
        page = await AdminAggregationService(storage).search_leads(admin, LeadAdminQuery(tenant_ids=[]))
        assert page.total == 0
        assert page.items == []

    async def test_filters(self, storage, admin, seeded):
        service = AdminAggregationService(storage)
        all_ids = list(seeded.values())
        page = await service.search_leads(
            admin, LeadAdminQuery(tenant_ids=all_ids, status="new", source="website", min_score=60, max_score=95)
        )
        assert sorted(lead.name for lead in page.items) == ["Arjun", "Deepa"]

        by_priority = await service.search_leads(admin, LeadAdminQuery(tenant_ids=all_ids, priority="high"))
        assert [lead.name for lead in by_priority.items] == ["Arjun"]

    async def test_search_matches_name_email_phone(self, storage, admin, seeded):
        service = AdminAggregationService(storage)
        page = await service.search_leads(admin, LeadAdminQuery(tenant_ids=list(seeded.values()), search="DEEPA@"))
        assert [lead.name for lead in page.items] == ["Deepa"]

    async def test_vendor_category(self, storage, admin, seeded):
        service = AdminAggregationService(storage)
        page = await service.search_leads(
            admin, LeadAdminQuery(tenant_ids=list(seeded.values()), vendor_category="Fitness Centers")
        )
        assert page.total == 3
        assert {lead.tenant_id for lead in page.items} == {seeded["gym"]}

    async def test_sort_with_missing_values_last(self, storage, admin, seeded):
        service = AdminAggregationService(storage)
        gym = [seeded["gym"]]
        desc = await service.search_leads(admin, LeadAdminQuery(tenant_ids=gym, sort_by="lead_score"))
        assert [lead.name for lead in desc.items] == ["Arjun", "Bina", "Chetan"]
        asc = await service.search_leads(
            admin, LeadAdminQuery(tenant_ids=gym, sort_by="lead_score", sort_order="asc")
        )
        assert [lead.name for lead in asc.items] == ["Bina", "Arjun", "Chetan"]

    async def test_pagination_counts_before_slicing(self, storage, admin, seeded):
        service = AdminAggregationService(storage)
        query = LeadAdminQuery(tenant_ids=list(seeded.values()), sort_by="name", sort_order="asc", limit=2, offset=1)
        page = await service.search_leads(admin, query)
        assert page.total == 5
        assert (page.limit, page.offset) == (2, 1)
        assert [lead.name for lead in page.items] == ["Bina", "Chetan"]

        beyond = await service.search_leads(admin, query.model_copy(update={"offset": 10}))
        assert beyond.total == 5
        assert beyond.items == []


class TestCustomerSearch:
    async def test_customers_and_tagged_dispatch(self, storage, admin, seeded):
        service = AdminAggregationService(storage)
        query = TypeAdapter(AdminQuery).validate_python(
            {"kind": "customers", "tenant_ids": [seeded["cafe"], seeded["salon"]], "city": "Pune"}
        )
        assert isinstance(query, CustomerAdminQuery)
        page = await service.search(admin, query)
        assert page.total == 2
        assert {c.name for c in page.items} == {"cafe customer", "salon customer"}

    def test_unknown_kind_is_rejected(self):
        with pytest.raises(ValidationError):
            TypeAdapter(AdminQuery).validate_python({"kind": "suppliers", "tenant_ids": []})

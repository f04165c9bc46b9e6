from __future__ import annotations

from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, Query

from vendorhub.core.deps import get_admin_service, get_storage, require_admin
from vendorhub.db.context import SecurityContext
from vendorhub.schemas.admin import AdminPage, AdminQuery, CustomerAdminQuery, CustomerPage, LeadAdminQuery, LeadPage
from vendorhub.schemas.tenancy import VendorFilter, VendorRead
from vendorhub.services.admin import AdminAggregationService
from vendorhub.storage.base import Storage

router = APIRouter(prefix="/admin", tags=["Admin"])


# PUBLIC_INTERFACE
@router.get(
    "/vendors",
    response_model=List[VendorRead],
    summary="List vendors",
    description="Every registered vendor, optionally filtered by status or category.",
)
async def list_vendors(
    context: SecurityContext = Depends(require_admin),
    storage: Storage = Depends(get_storage),
    vendor_status: Optional[str] = Query(None, alias="status"),
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
) -> List[VendorRead]:
    filters = VendorFilter(status=vendor_status, category=category, search=search)
    return await storage.vendors.list_all(context, filters)


# PUBLIC_INTERFACE
@router.post(
    "/search",
    response_model=AdminPage[Any],
    summary="Cross-vendor search",
    description="Run a tagged admin query; `kind` selects leads or customers.",
)
async def admin_search(
    query: AdminQuery = Body(...),
    context: SecurityContext = Depends(require_admin),
    service: AdminAggregationService = Depends(get_admin_service),
) -> AdminPage[Any]:
    return await service.search(context, query)


# PUBLIC_INTERFACE
@router.post(
    "/leads/search",
    response_model=LeadPage,
    summary="Search leads across vendors",
)
async def search_leads(
    query: LeadAdminQuery,
    context: SecurityContext = Depends(require_admin),
    service: AdminAggregationService = Depends(get_admin_service),
) -> LeadPage:
    return await service.search_leads(context, query)


# PUBLIC_INTERFACE
@router.post(
    "/customers/search",
    response_model=CustomerPage,
    summary="Search customers across vendors",
)
async def search_customers(
    query: CustomerAdminQuery,
    context: SecurityContext = Depends(require_admin),
    service: AdminAggregationService = Depends(get_admin_service),
) -> CustomerPage:
    return await service.search_customers(context, query)

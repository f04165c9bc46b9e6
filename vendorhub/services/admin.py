from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence, TypeVar

from vendorhub.db.context import SecurityContext
from vendorhub.schemas.admin import AdminPage, CustomerAdminQuery, LeadAdminQuery
from vendorhub.schemas.customers import CustomerRead, LeadRead
from vendorhub.storage.base import Storage, contains_text, within_dates

logger = logging.getLogger(__name__)

T = TypeVar("T")

_LEAD_SEARCH_FIELDS = ("name", "email", "phone", "company")
_CUSTOMER_SEARCH_FIELDS = ("name", "email", "phone")


def _sorted(rows: List[T], sort_by: str, sort_order: str) -> List[T]:
    """Sort by one attribute; rows without a value go last in either order."""
    present = [r for r in rows if getattr(r, sort_by) is not None]
    missing = [r for r in rows if getattr(r, sort_by) is None]
    present.sort(key=lambda r: r.id)
    present.sort(key=lambda r: getattr(r, sort_by), reverse=sort_order == "desc")
    return present + missing


def _page(rows: List[T], query: Any) -> AdminPage[Any]:
    ordered = _sorted(rows, query.sort_by, query.sort_order)
    return AdminPage(
        items=ordered[query.offset: query.offset + query.limit],
        total=len(ordered),
        limit=query.limit,
        offset=query.offset,
    )


def _common_match(row: Any, query: Any, search_fields: Sequence[str]) -> bool:
    if query.search and not contains_text((getattr(row, f) for f in search_fields), query.search):
        return False
    return within_dates(row.created_at, query.date_from, query.date_to)


def _lead_matches(lead: LeadRead, query: LeadAdminQuery) -> bool:
    for name in ("status", "source", "priority", "assigned_employee_id"):
        expected = getattr(query, name)
        if expected is not None and getattr(lead, name) != expected:
            return False
    if query.min_score is not None and (lead.lead_score is None or lead.lead_score < query.min_score):
        return False
    if query.max_score is not None and (lead.lead_score is None or lead.lead_score > query.max_score):
        return False
    return _common_match(lead, query, _LEAD_SEARCH_FIELDS)


def _customer_matches(customer: CustomerRead, query: CustomerAdminQuery) -> bool:
    for name in ("status", "customer_type", "membership_type", "city"):
        expected = getattr(query, name)
        if expected is not None and getattr(customer, name) != expected:
            return False
    return _common_match(customer, query, _CUSTOMER_SEARCH_FIELDS)


class AdminAggregationService:
    """
    Cross-vendor views for platform administrators.

    Rows are fetched through the storage abstraction with the admin context and
    the caller's explicit tenant allow-list; filtering, search, sorting and
    pagination then happen in memory. `total` counts every match before the page
    is cut. Every entry point rejects non-admin contexts.
    """

    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    # PUBLIC_INTERFACE
    async def search(self, context: SecurityContext, query: Any) -> AdminPage[Any]:
        """Dispatch a tagged admin query (LeadAdminQuery or CustomerAdminQuery)."""
        context.require_admin()
        if isinstance(query, LeadAdminQuery):
            return await self.search_leads(context, query)
        if isinstance(query, CustomerAdminQuery):
            return await self.search_customers(context, query)
        raise TypeError(f"unsupported admin query {type(query).__name__}")

    # PUBLIC_INTERFACE
    async def search_leads(self, context: SecurityContext, query: LeadAdminQuery) -> AdminPage[LeadRead]:
        """Leads of the listed vendors, filtered, sorted and paginated."""
        context.require_admin()
        rows = await self.storage.leads.list_for_tenants(context, query.tenant_ids)
        rows = await self._restrict_to_vendor_category(context, query, rows)
        page = _page([r for r in rows if _lead_matches(r, query)], query)
        logger.info("Admin lead search tenants=%d matched=%d", len(query.tenant_ids), page.total)
        return page

    # PUBLIC_INTERFACE
    async def search_customers(self, context: SecurityContext, query: CustomerAdminQuery) -> AdminPage[CustomerRead]:
        """Customers of the listed vendors, filtered, sorted and paginated."""
        context.require_admin()
        rows = await self.storage.customers.list_for_tenants(context, query.tenant_ids)
        rows = await self._restrict_to_vendor_category(context, query, rows)
        page = _page([r for r in rows if _customer_matches(r, query)], query)
        logger.info("Admin customer search tenants=%d matched=%d", len(query.tenant_ids), page.total)
        return page

    async def _restrict_to_vendor_category(
        self, context: SecurityContext, query: Any, rows: List[T]
    ) -> List[T]:
        category: Optional[str] = query.vendor_category
        if not category:
            return rows
        vendors = await self.storage.vendors.list_for_tenants(context, query.tenant_ids)
        allowed = {v.id for v in vendors if v.category == category}
        return [r for r in rows if r.tenant_id in allowed]

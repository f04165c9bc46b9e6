from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from vendorhub.core.deps import get_security_context, get_storage
from vendorhub.db.context import SecurityContext
from vendorhub.schemas.common import MessageResponse
from vendorhub.schemas.customers import CustomerCreate, CustomerFilter, CustomerRead, CustomerUpdate
from vendorhub.storage.base import Storage

router = APIRouter(prefix="/customers", tags=["Customers"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[CustomerRead],
    summary="List customers",
    description="Return the calling vendor's customers, newest first.",
)
async def list_customers(
    context: SecurityContext = Depends(get_security_context),
    storage: Storage = Depends(get_storage),
    search: Optional[str] = Query(None, description="Substring over name, phone, email, company, city"),
    customer_status: Optional[str] = Query(None, alias="status", description="Filter by status"),
    customer_type: Optional[str] = Query(None, description="Filter by customer type"),
    city: Optional[str] = Query(None, description="Filter by city"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[CustomerRead]:
    filters = CustomerFilter(search=search, status=customer_status, customer_type=customer_type, city=city)
    rows = await storage.customers.list_by_tenant(context, context.require_tenant(), filters)
    return rows[offset: offset + limit]


# PUBLIC_INTERFACE
@router.get(
    "/by-phone/{phone}",
    response_model=CustomerRead,
    summary="Find customer by phone",
)
async def get_customer_by_phone(
    phone: str = Path(..., description="Phone number"),
    context: SecurityContext = Depends(get_security_context),
    storage: Storage = Depends(get_storage),
) -> CustomerRead:
    customer = await storage.customers.get_by_phone(context, phone)
    if customer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return customer


# PUBLIC_INTERFACE
@router.get(
    "/{customer_id}",
    response_model=CustomerRead,
    summary="Get customer",
)
async def get_customer(
    customer_id: str = Path(..., description="Customer id"),
    context: SecurityContext = Depends(get_security_context),
    storage: Storage = Depends(get_storage),
) -> CustomerRead:
    customer = await storage.customers.get(context, customer_id)
    if customer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return customer


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=CustomerRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create customer",
    description="Create a customer owned by the calling vendor.",
)
async def create_customer(
    payload: CustomerCreate,
    context: SecurityContext = Depends(get_security_context),
    storage: Storage = Depends(get_storage),
) -> CustomerRead:
    return await storage.customers.create(context, payload)


# PUBLIC_INTERFACE
@router.patch(
    "/{customer_id}",
    response_model=CustomerRead,
    summary="Update customer",
)
async def update_customer(
    changes: CustomerUpdate,
    customer_id: str = Path(..., description="Customer id"),
    context: SecurityContext = Depends(get_security_context),
    storage: Storage = Depends(get_storage),
) -> CustomerRead:
    updated = await storage.customers.update(context, customer_id, changes)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return updated


# PUBLIC_INTERFACE
@router.delete(
    "/{customer_id}",
    response_model=MessageResponse,
    summary="Delete customer",
)
async def delete_customer(
    customer_id: str = Path(..., description="Customer id"),
    context: SecurityContext = Depends(get_security_context),
    storage: Storage = Depends(get_storage),
) -> MessageResponse:
    if not await storage.customers.delete(context, customer_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return MessageResponse(message="Customer deleted")

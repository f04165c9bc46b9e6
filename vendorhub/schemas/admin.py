from __future__ import annotations

from typing import Annotated, Generic, List, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

from .common import UtcDatetime
from .customers import CustomerRead, LeadRead

T = TypeVar("T")

SortOrder = Literal["asc", "desc"]


class _AdminQueryBase(BaseModel):
    """
    Fields shared by every admin aggregation query.

    `tenant_ids` is required: an admin query always names the vendors it covers,
    there is no implicit "all vendors".
    """
    model_config = ConfigDict(extra="forbid")

    tenant_ids: List[str] = Field(..., description="Vendors whose rows may appear in the result")
    vendor_category: Optional[str] = Field(None, description="Keep rows whose vendor is in this industry category")
    search: Optional[str] = Field(None, description="Case-insensitive substring over name, email, phone")
    date_from: Optional[UtcDatetime] = Field(None, description="created_at lower bound (inclusive)")
    date_to: Optional[UtcDatetime] = Field(None, description="created_at upper bound (inclusive)")
    sort_order: SortOrder = Field("desc")
    limit: int = Field(50, ge=1, le=500)
    offset: int = Field(0, ge=0)


class LeadAdminQuery(_AdminQueryBase):
    """Cross-vendor lead search."""
    kind: Literal["leads"] = "leads"
    status: Optional[str] = None
    source: Optional[str] = None
    priority: Optional[str] = None
    assigned_employee_id: Optional[str] = None
    min_score: Optional[int] = Field(None, ge=0)
    max_score: Optional[int] = Field(None, ge=0)
    sort_by: Literal["created_at", "updated_at", "name", "lead_score", "status", "priority"] = "created_at"


class CustomerAdminQuery(_AdminQueryBase):
    """Cross-vendor customer search."""
    kind: Literal["customers"] = "customers"
    status: Optional[str] = None
    customer_type: Optional[str] = None
    membership_type: Optional[str] = None
    city: Optional[str] = None
    sort_by: Literal["created_at", "updated_at", "name", "city", "status"] = "created_at"


AdminQuery = Annotated[Union[LeadAdminQuery, CustomerAdminQuery], Field(discriminator="kind")]


class AdminPage(BaseModel, Generic[T]):
    """One page of an admin result; total counts every match before pagination."""
    items: List[T]
    total: int
    limit: int
    offset: int


LeadPage = AdminPage[LeadRead]
CustomerPage = AdminPage[CustomerRead]

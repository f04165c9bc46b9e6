from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from .common import BaseFilter, TenantReadModel, UtcDatetime


class CustomerCreate(BaseModel):
    """Create payload for a customer. Identity and timestamps are never accepted."""
    name: str = Field(..., min_length=1, description="Customer name")
    phone: str = Field(..., min_length=1, description="Phone number")
    email: Optional[str] = Field(None, description="Email address")
    city: Optional[str] = Field(None, description="City")
    company: Optional[str] = Field(None, description="Company name")
    customer_type: str = Field("walk-in", description="walk-in / online / referral / corporate")
    membership_type: Optional[str] = Field(None, description="Membership tier")
    status: str = Field("active", description="active / inactive")
    notes: Optional[str] = Field(None, description="Free-text notes")


class CustomerUpdate(BaseModel):
    """Partial update; only fields that are set are applied."""
    name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = None
    city: Optional[str] = None
    company: Optional[str] = None
    customer_type: Optional[str] = None
    membership_type: Optional[str] = None
    status: Optional[str] = None
    notes: Optional[str] = None


class CustomerRead(TenantReadModel):
    """Read model for a customer."""
    name: str
    phone: str
    email: Optional[str] = None
    city: Optional[str] = None
    company: Optional[str] = None
    customer_type: str
    membership_type: Optional[str] = None
    status: str
    notes: Optional[str] = None


class CustomerFilter(BaseFilter):
    phone: Optional[str] = None
    status: Optional[str] = None
    customer_type: Optional[str] = None
    membership_type: Optional[str] = None
    city: Optional[str] = None


class LeadCreate(BaseModel):
    """Create payload for a lead."""
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    email: Optional[str] = None
    company: Optional[str] = None
    source: str = Field("offline", description="offline / website / referral / social / campaign")
    status: str = Field("new", description="new / contacted / qualified / converted / lost")
    priority: str = Field("medium", description="low / medium / high")
    lead_score: Optional[int] = Field(None, ge=0, le=100)
    assigned_employee_id: Optional[str] = None
    estimated_budget: Optional[int] = Field(None, ge=0)
    next_follow_up_date: Optional[UtcDatetime] = None
    notes: Optional[str] = None


class LeadUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = None
    company: Optional[str] = None
    source: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    lead_score: Optional[int] = Field(None, ge=0, le=100)
    assigned_employee_id: Optional[str] = None
    estimated_budget: Optional[int] = Field(None, ge=0)
    next_follow_up_date: Optional[UtcDatetime] = None
    notes: Optional[str] = None


class LeadRead(TenantReadModel):
    """Read model for a lead."""
    name: str
    phone: str
    email: Optional[str] = None
    company: Optional[str] = None
    source: str
    status: str
    priority: str
    lead_score: Optional[int] = None
    assigned_employee_id: Optional[str] = None
    estimated_budget: Optional[int] = None
    next_follow_up_date: Optional[UtcDatetime] = None
    notes: Optional[str] = None


class LeadFilter(BaseFilter):
    status: Optional[str] = None
    source: Optional[str] = None
    priority: Optional[str] = None
    assigned_employee_id: Optional[str] = None

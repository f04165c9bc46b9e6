from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from .common import BaseFilter, ReadModel


class VendorCreate(BaseModel):
    """Onboarding payload for a vendor (tenant)."""
    business_name: str = Field(..., min_length=1, description="Business display name")
    owner_name: Optional[str] = Field(None, description="Owner full name")
    category: str = Field(..., description="Industry category name")
    subcategory: Optional[str] = Field(None, description="Industry subcategory")
    custom_category: Optional[str] = Field(None, description="Free-text category when category is Others")
    email: Optional[str] = Field(None, description="Contact email")
    phone: Optional[str] = Field(None, description="Contact phone")
    status: str = Field("active", description="active / suspended / pending")


class VendorUpdate(BaseModel):
    business_name: Optional[str] = Field(None, min_length=1)
    owner_name: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    custom_category: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[str] = None


class VendorRead(ReadModel):
    """Read model for a vendor."""
    business_name: str
    owner_name: Optional[str] = None
    category: str
    subcategory: Optional[str] = None
    custom_category: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    status: str


class VendorFilter(BaseFilter):
    status: Optional[str] = None
    category: Optional[str] = None


class CategoryCreate(BaseModel):
    """Create payload for an industry category."""
    name: str = Field(..., min_length=1, description="Category name")
    logo: Optional[str] = Field(None, description="Logo URL")
    is_global: bool = Field(False, description="Platform-wide category (admin only)")


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    logo: Optional[str] = None
    is_global: Optional[bool] = None


class CategoryRead(ReadModel):
    """Read model for a category; created_by is the authoring tenant or the platform."""
    name: str
    logo: Optional[str] = None
    created_by: str
    is_global: bool


class CategoryFilter(BaseFilter):
    is_global: Optional[bool] = None

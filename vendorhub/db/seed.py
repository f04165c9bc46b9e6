"""
Seeding utilities for reference and demo data.

Seeds:
- Global industry categories (platform-authored, visible to every vendor)
- A demo vendor with a few customers and leads

Seeding goes through the storage router, so each entity lands in whichever
backing store currently owns it.

Usage:
  python -m vendorhub.db.seed
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from vendorhub.core.errors import VendorHubError
from vendorhub.core.logging import configure_logging
from vendorhub.core.settings import get_app_settings
from vendorhub.db.config import get_settings
from vendorhub.db.context import SecurityContext
from vendorhub.db.pool import ConnectionPool
from vendorhub.db.scoped import ScopedExecutor
from vendorhub.schemas.customers import CustomerCreate, LeadCreate
from vendorhub.schemas.tenancy import CategoryCreate, VendorCreate, VendorFilter
from vendorhub.storage.base import Storage
from vendorhub.storage.factory import build_storage

logger = logging.getLogger(__name__)

# Industry categories offered at vendor onboarding, with their subcategories.
INDUSTRY_CATEGORIES: Dict[str, Tuple[str, ...]] = {
    "Healthcare": (
        "Hospitals", "Clinics", "Diagnostic Centers", "Pharmacies", "Dental Clinics",
        "Eye Clinics", "Physiotherapy Centers", "Mental Health Centers",
    ),
    "Fitness Centers": (
        "Gyms", "Yoga Studios", "CrossFit Boxes", "Dance Studios", "Martial Arts Centers",
        "Personal Training Studios", "Sports Academies",
    ),
    "Education": (
        "Schools", "Coaching Centers", "Tuition Centers", "Computer Training",
        "Language Learning", "Music Classes", "Art Classes", "Skill Development",
    ),
    "Real Estate": (
        "Property Dealers", "Real Estate Consultants", "Property Management",
        "Interior Designers", "Architects",
    ),
    "Beauty Salons": (
        "Unisex Salons", "Ladies Salons", "Men's Salons", "Spas", "Nail Studios",
        "Makeup Studios", "Hair Treatment Centers",
    ),
    "Hostel & PG": (
        "Student Hostels", "Working Professional PG", "Paying Guest", "Co-living Spaces", "Dormitories",
    ),
    "Restaurants": (
        "Fine Dining", "Casual Dining", "Fast Food", "Cafes", "Food Courts",
        "Cloud Kitchens", "Bakeries", "Sweet Shops",
    ),
    "Professional Services": (
        "Chartered Accountants", "Legal Services", "Consulting", "Marketing Agencies",
        "IT Services", "Event Management", "Photography Studios",
    ),
    "Food & Beverage": (
        "Grocery Stores", "Supermarkets", "Bakeries", "Juice Centers", "Ice Cream Parlors",
        "Sweet Shops", "Catering Services",
    ),
    "Fashion": (
        "Boutiques", "Clothing Stores", "Footwear Shops", "Jewelry Stores", "Accessories",
        "Tailoring Services",
    ),
    "Renting Services": (
        "Vehicle Rental", "Equipment Rental", "Party Equipment", "Furniture Rental",
        "Electronics Rental", "Sports Equipment Rental",
    ),
    "Repairing Services": (
        "Mobile Repair", "Computer Repair", "Appliance Repair", "Vehicle Repair",
        "Watch Repair", "Shoe Repair",
    ),
    "Home Services": (
        "Plumbing", "Electrical", "Carpentry", "Painting", "Cleaning Services",
        "Pest Control", "Home Maintenance", "AC Repair",
    ),
    "Others": ("Custom Category",),
}

DEMO_VENDOR_EMAIL = "demo@vendorhub.local"


# PUBLIC_INTERFACE
def subcategories_of(category: str) -> List[str]:
    """Subcategories offered for an industry category (empty for unknown names)."""
    return list(INDUSTRY_CATEGORIES.get(category, ()))


# PUBLIC_INTERFACE
async def seed_categories(storage: Storage, context: SecurityContext) -> int:
    """
    Create the global industry categories that do not exist yet.

    Requires an admin context (global categories are platform-authored).
    Returns the number of categories created; a second run creates none.
    """
    context.require_admin()
    existing = {c.name for c in await storage.categories.list_visible(context) if c.is_global}
    created = 0
    for name in INDUSTRY_CATEGORIES:
        if name in existing:
            continue
        await storage.categories.create(context, CategoryCreate(name=name, is_global=True))
        created += 1
    if created:
        logger.info("Seeded %d industry categories", created)
    else:
        logger.info("Industry categories already seeded (%d found)", len(existing))
    return created


# PUBLIC_INTERFACE
async def seed_sample_data(storage: Storage, context: SecurityContext) -> Optional[str]:
    """
    Register a demo vendor with sample customers and leads.

    Skipped when the demo vendor already exists. Returns the new vendor id, or
    None when nothing was seeded.
    """
    context.require_admin()
    vendors = await storage.vendors.list_all(context, VendorFilter(search=DEMO_VENDOR_EMAIL))
    if vendors:
        logger.info("Demo vendor already present vendor_id=%s", vendors[0].id)
        return None

    vendor = await storage.vendors.create(
        context,
        VendorCreate(
            business_name="Demo Fitness Studio",
            owner_name="Demo Owner",
            category="Fitness Centers",
            subcategory="Gyms",
            email=DEMO_VENDOR_EMAIL,
            phone="+910000000000",
        ),
    )
    tenant = SecurityContext.for_tenant(vendor.id, actor_id=context.actor_id)

    customers = [
        CustomerCreate(name="Asha Rao", phone="+911111111111", city="Pune", membership_type="gold"),
        CustomerCreate(name="Vikram Shah", phone="+912222222222", city="Mumbai", customer_type="online"),
    ]
    for payload in customers:
        await storage.customers.create(tenant, payload)

    leads = [
        LeadCreate(name="Neha Iyer", phone="+913333333333", source="website", priority="high", lead_score=80),
        LeadCreate(name="Rahul Menon", phone="+914444444444", source="referral", lead_score=45),
    ]
    for payload in leads:
        await storage.leads.create(tenant, payload)

    logger.info(
        "Seeded demo vendor vendor_id=%s customers=%d leads=%d", vendor.id, len(customers), len(leads)
    )
    return vendor.id


async def _seed_all() -> None:
    settings = get_app_settings()
    pool = ConnectionPool.from_settings(get_settings()) if settings.uses_database else None
    storage = build_storage(settings, ScopedExecutor(pool) if pool is not None else None)
    admin = SecurityContext.for_admin(actor_id="seed")
    try:
        await seed_categories(storage, admin)
        await seed_sample_data(storage, admin)
    finally:
        await storage.close()


if __name__ == "__main__":
    configure_logging()
    try:
        asyncio.run(_seed_all())
    except VendorHubError:
        logger.exception("Seeding failed")
        raise SystemExit(1)

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from vendorhub.db.base import Base, IdPkMixin, TenantMixin, TimestampMixin


class Customer(IdPkMixin, TenantMixin, TimestampMixin, Base):
    """Customer of a vendor (walk-in, online, referral, corporate)."""
    __tablename__ = "customers"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    city: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    company: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    customer_type: Mapped[str] = mapped_column(Text, nullable=False, default="walk-in")
    membership_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active")
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class Lead(IdPkMixin, TenantMixin, TimestampMixin, Base):
    """Sales lead captured from any source."""
    __tablename__ = "leads"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    company: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(Text, nullable=False, default="offline")
    status: Mapped[str] = mapped_column(Text, nullable=False, default="new")
    priority: Mapped[str] = mapped_column(Text, nullable=False, default="medium")
    lead_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    assigned_employee_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    estimated_budget: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    next_follow_up_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, Text
from sqlalchemy.orm import Mapped, mapped_column

from vendorhub.db.base import Base, IdPkMixin, TimestampMixin


class Vendor(IdPkMixin, TimestampMixin, Base):
    """A tenant: one vendor business. Its id is the tenant id stamped on every row it owns."""
    __tablename__ = "vendors"

    business_name: Mapped[str] = mapped_column(Text, nullable=False)
    owner_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    subcategory: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    custom_category: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active")


class Category(IdPkMixin, TimestampMixin, Base):
    """
    Industry category. Shared reference data: either global (platform-owned) or
    authored by one vendor (created_by = tenant id).
    """
    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    logo: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    is_global: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, MetaData, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# Standardized naming convention for alembic-friendly constraints/indexes.
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Declarative base class with metadata naming conventions."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class IdPkMixin:
    """Opaque string primary key, generated by the store (never by the client)."""
    id: Mapped[str] = mapped_column(Text, primary_key=True)


class TimestampMixin:
    """created_at/updated_at, written by the store on create and update."""
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class TenantMixin:
    """
    Tenant scoping column read by the row-level security policies.

    No foreign key to vendors: during a partial migration the vendor registry may
    still live in the ephemeral store.
    """
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    """Timezone-aware current time; every store timestamp comes from here."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Some drivers (sqlite) hand back naive datetimes for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class ReadModel(BaseModel):
    """Base for read models returned by every store; built from ORM rows or dicts."""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Store-generated identifier")
    created_at: UtcDatetime = Field(..., description="Creation timestamp (UTC)")
    updated_at: UtcDatetime = Field(..., description="Last update timestamp (UTC)")


class TenantReadModel(ReadModel):
    """Read model of a tenant-owned entity."""
    tenant_id: str = Field(..., description="Owning vendor (tenant) id")


class BaseFilter(BaseModel):
    """
    Optional list filters.

    Every field other than `search`, `date_from` and `date_to` is an equality match
    on the attribute of the same name. Unknown keys are rejected. Tenant scoping is
    applied by the store regardless of what the filter holds.
    """
    model_config = ConfigDict(extra="forbid")

    search: Optional[str] = Field(None, description="Case-insensitive substring over the entity's text fields")
    date_from: Optional[UtcDatetime] = Field(None, description="Inclusive lower bound on the entity's date field")
    date_to: Optional[UtcDatetime] = Field(None, description="Inclusive upper bound on the entity's date field")


class Pagination(BaseModel):
    """Pagination parameters."""
    limit: int = Field(50, ge=1, le=1000, description="Max number of records to return")
    offset: int = Field(0, ge=0, description="Number of records to skip")


class MessageResponse(BaseModel):
    """Standard message response."""
    message: str = Field(..., description="Human readable message")
    details: Optional[dict] = Field(default=None, description="Optional extra data")


class ErrorInfo(BaseModel):
    """Structured error description."""
    type: str = Field(..., description="Machine-readable error type code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Any] = Field(default=None, description="Optional error details (e.g., validation issues)")
    retryable: bool = Field(default=False, description="Whether the caller may retry the same request")


# PUBLIC_INTERFACE
class ErrorResponse(BaseModel):
    """Standardized API error envelope returned by exception handlers."""
    status: int = Field(..., description="HTTP status code")
    error: ErrorInfo = Field(..., description="Error details")
    correlation_id: Optional[str] = Field(default=None, description="Request correlation ID")
    tenant_id: Optional[str] = Field(default=None, description="Tenant ID (if available)")
    path: Optional[str] = Field(default=None, description="Request path")
    method: Optional[str] = Field(default=None, description="HTTP method")
    timestamp: datetime = Field(..., description="Error timestamp (UTC)")

from __future__ import annotations

from typing import Optional


class VendorHubError(Exception):
    """Root of every error raised by the data-access layer."""

    retryable: bool = False


class ConfigurationError(VendorHubError):
    """Required configuration is missing or inconsistent. Fatal at startup."""


# Infrastructure errors


class StoreConnectionError(VendorHubError):
    """
    Pool exhausted or the physical connection failed.

    Never leaves a transaction open; callers may retry the whole unit of work.
    """

    retryable = True


class PoolExhaustedError(StoreConnectionError):
    """No connection became available within the pool timeout."""


class TransactionError(VendorHubError):
    """
    Commit (or the rollback that followed it) failed.

    `cause` is always the failure that triggered the error, never a secondary
    rollback failure.
    """

    retryable = True

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


# Business errors


class BusinessError(VendorHubError):
    """Rejected operation with a reason that is safe to show to the caller."""


class AccessDeniedError(BusinessError):
    """The security context does not allow the requested scope."""


class InvariantViolation(BusinessError):
    """The operation would break a domain invariant."""


class ReferenceNotFoundError(InvariantViolation):
    """A create referenced a parent record that does not exist for this tenant."""

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} '{entity_id}' not found")
        self.kind = kind
        self.entity_id = entity_id


class CouponNotRedeemableError(InvariantViolation):
    """Coupon is inactive, expired, or has reached its usage cap."""


class LinkedRecordError(InvariantViolation):
    """Record is owned by another record and must be changed through its owner."""

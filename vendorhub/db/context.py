"""
Security context and the session-variable convention read by row-level security.

Every policy in the schema consults three variables:

    app.tenant_id   vendor whose rows are visible ('' matches nothing)
    app.role        'tenant' or 'admin'
    app.actor_id    acting user, for audit trails
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection

from vendorhub.core.errors import AccessDeniedError


_STAMP_SQL = text(
    "SELECT set_config('app.tenant_id', :tenant_id, true), "
    "set_config('app.role', :role, true), "
    "set_config('app.actor_id', :actor_id, true)"
)
_RESET_SQL = text(
    "SELECT set_config('app.tenant_id', '', false), "
    "set_config('app.role', '', false), "
    "set_config('app.actor_id', '', false)"
)
_READ_SQL = text(
    "SELECT current_setting('app.tenant_id', true), "
    "current_setting('app.role', true), "
    "current_setting('app.actor_id', true)"
)


class Role(str, enum.Enum):
    TENANT = "tenant"
    ADMIN = "admin"


@dataclass(frozen=True)
class SecurityContext:
    """
    Who is performing an operation.

    A tenant context without a tenant id is representable (it comes from broken
    upstream data) but it stamps an empty tenant, which policies treat as
    "no tenant", and every tenant-scoped store call rejects it.
    """

    tenant_id: Optional[str]
    role: Role = Role.TENANT
    actor_id: Optional[str] = None

    # PUBLIC_INTERFACE
    @classmethod
    def for_tenant(cls, tenant_id: str, actor_id: Optional[str] = None) -> "SecurityContext":
        """Context for a vendor acting on its own data."""
        return cls(tenant_id=tenant_id, role=Role.TENANT, actor_id=actor_id)

    # PUBLIC_INTERFACE
    @classmethod
    def for_admin(cls, actor_id: Optional[str] = None) -> "SecurityContext":
        """Platform administrator context; never carries a tenant."""
        return cls(tenant_id=None, role=Role.ADMIN, actor_id=actor_id)

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def require_tenant(self) -> str:
        """Return the tenant id or reject the call."""
        if self.role is not Role.TENANT or not self.tenant_id:
            raise AccessDeniedError("operation requires a tenant context")
        return self.tenant_id

    def require_admin(self) -> None:
        if self.role is not Role.ADMIN:
            raise AccessDeniedError("operation requires an admin context")

    def can_see(self, tenant_id: Optional[str]) -> bool:
        """Mirror of the row policy: admins see everything, tenants their own rows."""
        if self.is_admin:
            return True
        return bool(self.tenant_id) and tenant_id == self.tenant_id

    def session_values(self) -> dict[str, str]:
        """Values stamped on the connection; absent ids become ''."""
        return {
            "tenant_id": self.tenant_id or "",
            "role": self.role.value,
            "actor_id": self.actor_id or "",
        }


# PUBLIC_INTERFACE
async def stamp_session_context(connection: AsyncConnection, context: SecurityContext) -> None:
    """Set the three variables transaction-locally on the open transaction."""
    await connection.execute(_STAMP_SQL, context.session_values())


# PUBLIC_INTERFACE
async def reset_session_context(connection: AsyncConnection) -> None:
    """
    Reset the three variables at session level and commit.

    Runs on the raw connection after the unit-of-work transaction has ended, so it
    does not depend on transaction-local settings having been discarded.
    """
    await connection.execute(_RESET_SQL)
    await connection.commit()


# PUBLIC_INTERFACE
async def read_session_context(connection: AsyncConnection) -> dict[str, Optional[str]]:
    """Read back the variables currently visible on a connection."""
    row = (await connection.execute(_READ_SQL)).one()
    return {
        "tenant_id": row[0] or None,
        "role": row[1] or None,
        "actor_id": row[2] or None,
    }

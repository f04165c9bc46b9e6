from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from vendorhub.core.logging import role_var, tenant_id_var
from vendorhub.core.security import context_from_claims, decode_token
from vendorhub.db.context import SecurityContext
from vendorhub.services.admin import AdminAggregationService
from vendorhub.storage.base import Storage

logger = logging.getLogger(__name__)

# OAuth2 bearer (used by docs); tokens are issued by the external auth service
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


# PUBLIC_INTERFACE
def get_storage(request: Request) -> Storage:
    """Return the process-wide storage router built by the app lifespan."""
    return request.app.state.storage


# PUBLIC_INTERFACE
def get_admin_service(storage: Storage = Depends(get_storage)) -> AdminAggregationService:
    """Admin aggregation service over the process-wide storage."""
    return AdminAggregationService(storage)


# PUBLIC_INTERFACE
async def get_security_context(request: Request, token: str = Depends(oauth2_scheme)) -> SecurityContext:
    """
    Resolve the caller's SecurityContext from the Authorization bearer token.

    Raises:
        HTTPException: 401 Unauthorized if the token is invalid or expired.
    """
    try:
        claims = decode_token(token, request.app.state.settings)
        context = context_from_claims(claims)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    # Enrich log lines of this request with the caller's scope.
    tenant_id_var.set(context.tenant_id)
    role_var.set(context.role.value)
    return context


# PUBLIC_INTERFACE
async def require_admin(context: SecurityContext = Depends(get_security_context)) -> SecurityContext:
    """Dependency that only lets administrator contexts through."""
    if not context.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator role required")
    return context

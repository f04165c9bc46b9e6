from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from vendorhub.core.settings import AppSettings, get_app_settings
from vendorhub.db.context import Role, SecurityContext


def _create_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta],
    token_type: str,
    settings: AppSettings,
) -> str:
    to_encode = data.copy()
    now = datetime.now(tz=timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire, "iat": now, "type": token_type})
    encoded_jwt = jwt.encode(
        to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM
    )
    return encoded_jwt


# PUBLIC_INTERFACE
def create_access_token(
    subject: str,
    tenant_id: Optional[str],
    role: Role = Role.TENANT,
    expires_minutes: Optional[int] = None,
    settings: Optional[AppSettings] = None,
) -> str:
    """
    Create a signed access token carrying the claims a SecurityContext is built from.

    Issuing tokens belongs to the auth service; this helper exists for operators and tests.
    """
    settings = settings or get_app_settings()
    exp = timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload: Dict[str, Any] = {"sub": subject, "tenant_id": tenant_id, "role": Role(role).value}
    return _create_token(payload, exp, token_type="access", settings=settings)


# PUBLIC_INTERFACE
def decode_token(token: str, settings: Optional[AppSettings] = None) -> Dict[str, Any]:
    """Decode and validate a JWT; raises JWTError if invalid/expired."""
    settings = settings or get_app_settings()
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


# PUBLIC_INTERFACE
def context_from_claims(claims: Dict[str, Any]) -> SecurityContext:
    """
    Build the SecurityContext for a decoded access token.

    Raises:
        JWTError: the token is not an access token or names an unknown role.
    """
    if claims.get("type") != "access":
        raise JWTError("not an access token")
    try:
        role = Role(claims.get("role") or Role.TENANT.value)
    except ValueError as exc:
        raise JWTError("unknown role claim") from exc
    actor_id = claims.get("sub")
    if role is Role.ADMIN:
        return SecurityContext.for_admin(actor_id=actor_id)
    # A tenant token without a tenant claim still yields a tenant context; every
    # tenant-scoped store call rejects it and the database matches no rows.
    return SecurityContext(tenant_id=claims.get("tenant_id") or None, role=Role.TENANT, actor_id=actor_id)

"""
Database package initializer exposing key public interfaces for configuration,
the connection pool, the scoped executor and the security context.
"""

from .base import Base
from .config import get_settings, Settings
from .context import Role, SecurityContext, read_session_context
from .pool import ConnectionPool, PooledConnection
from .scoped import ScopedExecutor

# Import models to ensure they are registered with SQLAlchemy metadata
# when the db package is imported.
from . import models as models  # noqa: F401

__all__ = [
    "Base",
    "Settings",
    "get_settings",
    "Role",
    "SecurityContext",
    "read_session_context",
    "ConnectionPool",
    "PooledConnection",
    "ScopedExecutor",
    "models",
]

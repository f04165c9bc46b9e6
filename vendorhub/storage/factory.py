from __future__ import annotations

from typing import Dict, Optional

from vendorhub.core.errors import ConfigurationError
from vendorhub.core.settings import AppSettings
from vendorhub.db.scoped import ScopedExecutor

from .base import EntityKind, Storage
from .memory import MemoryStorage
from .relational import RelationalStorage
from .router import StorageRouter

MEMORY = "memory"
DATABASE = "database"


# PUBLIC_INTERFACE
def build_storage(
    settings: AppSettings,
    executor: Optional[ScopedExecutor] = None,
    memory: Optional[MemoryStorage] = None,
) -> StorageRouter:
    """
    Build the router described by STORAGE_DEFAULT_BACKEND / STORAGE_DATABASE_ENTITIES.

    Raises:
        ConfigurationError: unknown backend or entity name, a coupled group split
            across backends, or a database route without an executor.
    """
    backends: Dict[str, Storage] = {MEMORY: memory or MemoryStorage()}
    if executor is not None:
        backends[DATABASE] = RelationalStorage(executor)

    default = settings.STORAGE_DEFAULT_BACKEND
    if default not in (MEMORY, DATABASE):
        raise ConfigurationError(f"unknown storage backend '{default}'")

    routes: Dict[EntityKind, str] = {}
    for name in settings.database_entities:
        try:
            routes[EntityKind(name)] = DATABASE
        except ValueError as exc:
            raise ConfigurationError(f"unknown entity kind '{name}' in STORAGE_DATABASE_ENTITIES") from exc

    if settings.uses_database and DATABASE not in backends:
        raise ConfigurationError("database storage is routed but no database connection is configured")
    return StorageRouter(backends, default=default, routes=routes)

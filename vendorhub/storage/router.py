"""
Storage router: the hybrid facade used while entities migrate to the database.

The route table (entity kind -> backend name) is fixed at construction. Each
kind is served by exactly one backend for reads and writes, so a write through
the router is always visible to the next read through the router. Kinds whose
derived invariants span two tables are routed as a group.
"""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional

from vendorhub.core.errors import ConfigurationError

from .base import COUPLED_KINDS, EntityKind, EntityStore, Storage

logger = logging.getLogger(__name__)


class StorageRouter(Storage):
    """Implements Storage by delegating every entity kind to its owning backend."""

    name = "router"

    def __init__(
        self,
        backends: Mapping[str, Storage],
        default: str,
        routes: Optional[Mapping[EntityKind, str]] = None,
    ) -> None:
        if default not in backends:
            raise ConfigurationError(f"default storage backend '{default}' is not configured")
        table: Dict[EntityKind, str] = {kind: default for kind in EntityKind}
        for kind, backend in (routes or {}).items():
            if backend not in backends:
                raise ConfigurationError(f"entity '{EntityKind(kind).value}' routed to unknown backend '{backend}'")
            table[EntityKind(kind)] = backend

        for group in COUPLED_KINDS:
            owners = {table[kind] for kind in group}
            if len(owners) > 1:
                names = ", ".join(sorted(kind.value for kind in group))
                raise ConfigurationError(f"entities {names} must be routed to the same backend")

        self._backends = dict(backends)
        self._routes = table
        for kind, backend in table.items():
            setattr(self, kind.value, backends[backend].store(kind))

        logger.info(
            "Storage routes: %s",
            ", ".join(f"{kind.value}={backend}" for kind, backend in sorted(table.items(), key=lambda kv: kv[0].value)),
        )

    # PUBLIC_INTERFACE
    def owner_of(self, kind: EntityKind) -> str:
        """Name of the backend authoritative for `kind`."""
        return self._routes[EntityKind(kind)]

    @property
    def routes(self) -> Dict[EntityKind, str]:
        return dict(self._routes)

    def store(self, kind: EntityKind) -> EntityStore:
        return getattr(self, EntityKind(kind).value)

    async def close(self) -> None:
        for backend in self._backends.values():
            await backend.close()

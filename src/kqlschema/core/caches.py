"""Per-loader caches: provider handles and known-absent databases.

Both caches are shared by every call made on one loader and are guarded
by a lock, so they stay consistent when the loader is used from several
tasks or threads. Neither cache ever expires entries on its own.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Mapping, Protocol

from kqlschema.core.connection import ClusterConnection

logger = logging.getLogger(__name__)


class AdminProvider(Protocol):
    """Interface of a live session able to run management commands."""

    async def execute_control_command(
        self, database: str | None, command: str
    ) -> list[Mapping[str, Any]] | None:
        """Return rows of the primary result, or None if there is none."""
        ...

    async def close(self) -> None:
        """Release the session."""
        ...


ProviderFactory = Callable[[ClusterConnection], AdminProvider]


class AdminProviderCache:
    """One provider per physical data source, created on first use."""

    def __init__(self, factory: ProviderFactory) -> None:
        self._factory = factory
        self._providers: dict[str, AdminProvider] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._providers)

    def get_or_create(self, connection: ClusterConnection) -> AdminProvider:
        """Return the provider for the connection's data source, creating it if needed."""
        with self._lock:
            provider = self._providers.get(connection.data_source)
            if provider is None:
                logger.debug("Creating admin provider for %s", connection.data_source)
                provider = self._factory(connection)
                self._providers[connection.data_source] = provider
            return provider

    async def dispose_all(self) -> None:
        """Close every cached provider once and empty the cache."""
        with self._lock:
            providers = list(self._providers.values())
            self._providers.clear()

        failures: list[Exception] = []
        for provider in providers:
            try:
                await provider.close()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to close admin provider: %s", exc)
                failures.append(exc)

        if failures:
            raise failures[0]


class NegativeDatabaseCache:
    """Remembers database names that do not exist on a cluster."""

    def __init__(self) -> None:
        self._absent: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def is_known_absent(self, cluster: str, database: str) -> bool:
        with self._lock:
            return database in self._absent.get(cluster, ())

    def mark_absent(self, cluster: str, database: str) -> None:
        with self._lock:
            self._absent.setdefault(cluster, set()).add(database)

"""Loading database schemas from a Kusto cluster.

`ServerSchemaLoader` is the entry point. It resolves cluster names into
connections, keeps one provider per cluster, remembers databases that do
not exist, and assembles every category of schema objects into a single
`DatabaseSymbol`.

Successful loads are never cached: each call re-queries the cluster.
"""

from __future__ import annotations

import asyncio
import logging

from kqlschema.core.adapters.kusto import KustoAdminAdapter
from kqlschema.core.auth import parse_connection_string
from kqlschema.core.caches import (
    AdminProvider,
    AdminProviderCache,
    NegativeDatabaseCache,
    ProviderFactory,
)
from kqlschema.core.commands import ControlCommandExecutor, DatabaseNameRecord
from kqlschema.core.connection import ClusterConnection, ConnectionResolver
from kqlschema.core.errors import DatabaseNotFoundError
from kqlschema.core.fetchers import CATEGORY_FETCHERS
from kqlschema.core.symbols import DatabaseName, DatabaseSymbol, Symbol

logger = logging.getLogger(__name__)


class ServerSchemaLoader:
    """
    Loads schema symbols from Kusto clusters.

    Args:
        default_connection: Connection of the default cluster. Connections
            to other clusters borrow its credentials.
        default_domain: Domain appended to short cluster names. Must start
            with a dot; defaults to `.kusto.windows.net`.
        provider_factory: Creates a provider for a connection. Defaults to
            `KustoAdminAdapter.from_connection`.

    Use `aclose()` (or `async with`) to release the cached providers.
    """

    def __init__(
        self,
        default_connection: ClusterConnection,
        default_domain: str | None = None,
        *,
        provider_factory: ProviderFactory | None = None,
    ) -> None:
        if default_connection is None:
            raise ValueError("default_connection is required")

        self._resolver = ConnectionResolver(default_connection, default_domain)
        self._providers = AdminProviderCache(
            provider_factory or KustoAdminAdapter.from_connection
        )
        self._absent = NegativeDatabaseCache()
        self._executor = ControlCommandExecutor()

    @classmethod
    def from_connection_string(
        cls,
        connection_string: str,
        default_domain: str | None = None,
        *,
        provider_factory: ProviderFactory | None = None,
    ) -> "ServerSchemaLoader":
        """Create a loader from a raw Kusto connection string."""
        return cls(
            parse_connection_string(connection_string),
            default_domain,
            provider_factory=provider_factory,
        )

    @property
    def default_cluster(self) -> str:
        """Host name of the default cluster."""
        return self._resolver.default_cluster

    @property
    def default_domain(self) -> str:
        return self._resolver.default_domain

    @property
    def default_database(self) -> str | None:
        """Database named by the default connection, if any."""
        return self._resolver.default_connection.initial_catalog

    async def __aenter__(self) -> "ServerSchemaLoader":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close every open provider."""
        await self._providers.dispose_all()

    def _provider_for(self, connection: ClusterConnection) -> AdminProvider:
        return self._providers.get_or_create(connection)

    async def load_database_names(
        self,
        cluster_name: str | None = None,
        throw_on_error: bool = False,
    ) -> list[DatabaseName] | None:
        """
        Load the names of all databases on a cluster.

        Returns None when the cluster reports no databases (or, in lenient
        mode, when the command fails).
        """
        provider = self._provider_for(self._resolver.resolve(cluster_name))

        records = await self._executor.execute(
            provider, None, ".show databases", DatabaseNameRecord, throw_on_error=throw_on_error
        )
        names = [DatabaseName(r.database_name, r.pretty_name or None) for r in records]
        return names or None

    def _not_found(self, database: str, cluster: str, throw_on_error: bool) -> None:
        if throw_on_error:
            raise DatabaseNotFoundError(database, cluster)
        return None

    async def load_database(
        self,
        database_name: str,
        cluster_name: str | None = None,
        throw_on_error: bool = False,
    ) -> DatabaseSymbol | None:
        """
        Load a database's schema and return it as a DatabaseSymbol.

        `database_name` may be the database name or its pretty name. Returns
        None (or raises DatabaseNotFoundError when `throw_on_error` is set)
        if the database does not exist on the cluster. Cancelling the
        calling task aborts the command in flight.
        """
        connection = self._resolver.resolve(cluster_name)
        cluster = connection.address

        # keyed like the provider cache: one entry per physical data source
        if self._absent.is_known_absent(connection.data_source, database_name):
            logger.debug("Database '%s' known absent on %s", database_name, cluster)
            return self._not_found(database_name, cluster, throw_on_error)

        provider = self._provider_for(connection)

        identity = await self._resolve_identity(provider, database_name, throw_on_error)
        if identity is None:
            logger.warning(
                "Database '%s' not found on %s; not querying it again", database_name, cluster
            )
            self._absent.mark_absent(connection.data_source, database_name)
            return self._not_found(database_name, cluster, throw_on_error)

        members = await self._fetch_members(provider, identity.name, throw_on_error)
        return DatabaseSymbol(identity.name, identity.pretty_name, members)

    async def _resolve_identity(
        self,
        provider: AdminProvider,
        database_name_or_pretty_name: str,
        throw_on_error: bool,
    ) -> DatabaseName | None:
        """Return the (name, pretty name) pair for either form of a database name."""
        records = await self._executor.execute(
            provider,
            database_name_or_pretty_name,
            ".show database identity",
            DatabaseNameRecord,
            throw_on_error=throw_on_error,
        )
        if not records or not records[0].database_name:
            return None
        first = records[0]
        return DatabaseName(first.database_name, first.pretty_name or None)

    async def _fetch_members(
        self,
        provider: AdminProvider,
        database: str,
        throw_on_error: bool,
    ) -> list[Symbol]:
        """Run every category fetcher concurrently and merge in category order."""
        tasks = [
            asyncio.ensure_future(fetch(self._executor, provider, database, throw_on_error))
            for fetch in CATEGORY_FETCHERS
        ]
        try:
            per_category = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        members: list[Symbol] = []
        for symbols in per_category:
            members.extend(symbols)
        return members

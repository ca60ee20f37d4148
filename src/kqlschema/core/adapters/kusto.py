from __future__ import annotations

import logging
from typing import Any, Mapping

from azure.kusto.data.aio import KustoClient

from kqlschema.core.auth import build_connection_string_builder
from kqlschema.core.connection import ClusterConnection

logger = logging.getLogger(__name__)


class KustoAdminAdapter:
    """Adapter around the azure-kusto-data async client (management commands only)."""

    def __init__(self, client: KustoClient, data_source: str) -> None:
        self.client = client
        self.data_source = data_source

    @classmethod
    def from_connection(cls, connection: ClusterConnection) -> "KustoAdminAdapter":
        """Create an adapter with its own client session for one cluster."""
        kcsb = build_connection_string_builder(connection)
        logger.debug("Opening Kusto client for %s", connection.data_source)
        return cls(KustoClient(kcsb), connection.data_source)

    async def execute_control_command(
        self, database: str | None, command: str
    ) -> list[Mapping[str, Any]] | None:
        """
        Run a management command and return the rows of its primary result.

        Returns None when the response carries no primary result table.
        """
        response = await self.client.execute_mgmt(database or None, command)
        primary = response.primary_results
        if not primary:
            return None
        return [row.to_dict() for row in primary[0]]

    async def close(self) -> None:
        """Close the underlying client session."""
        logger.debug("Closing Kusto client for %s", self.data_source)
        await self.client.close()

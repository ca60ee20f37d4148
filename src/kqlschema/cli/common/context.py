"""Application context management for the CLI."""

import os
from dataclasses import dataclass

from kqlschema.cli.common.exits import die
from kqlschema.core.auth import connection_from_env, parse_connection_string
from kqlschema.core.errors import AuthError
from kqlschema.core.loader import ServerSchemaLoader


@dataclass
class LoaderAppContext:
    """Application context holding the schema loader for the default cluster."""

    cluster: str
    loader: ServerSchemaLoader


def build_loader_context(
    cluster: str | None,
    *,
    domain: str | None = None,
    auth: str | None = None,
) -> LoaderAppContext:
    """Build the application context with a loader for the default cluster.

    Args:
        cluster: Cluster URI, short name or full Kusto connection string.
            Falls back to KQLSCHEMA_CLUSTER.
        domain: Domain for short cluster names. Falls back to KQLSCHEMA_DOMAIN.
        auth: Authentication method. Falls back to KQLSCHEMA_AUTH.

    Returns:
        LoaderAppContext: Context with a ready (not yet connected) loader.
    """
    try:
        if cluster and "=" in cluster:
            connection = parse_connection_string(cluster)
        else:
            connection = connection_from_env(cluster, auth)
        loader = ServerSchemaLoader(
            connection, domain or os.getenv("KQLSCHEMA_DOMAIN") or None
        )
    except (AuthError, ValueError) as exc:
        die(str(exc), code=2)
    return LoaderAppContext(cluster=loader.default_cluster, loader=loader)

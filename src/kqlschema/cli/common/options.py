"""Common CLI options for the CLI."""

import typer

ClusterOpt = typer.Option(
    None,
    "--cluster",
    "-c",
    help="Default cluster URI or connection string (env: KQLSCHEMA_CLUSTER)",
)

DomainOpt = typer.Option(
    None,
    "--domain",
    help="Domain appended to short cluster names (env: KQLSCHEMA_DOMAIN)",
)

AuthOpt = typer.Option(
    None,
    "--auth",
    help="Authentication: az-cli, app-key, app-certificate, managed-identity, "
    "device-code, user-token (env: KQLSCHEMA_AUTH)",
)

VerboseOpt = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Log every command sent to the cluster",
)

OnClusterOpt = typer.Option(
    None,
    "--on",
    help="Cluster name or URI to query instead of the default cluster",
)

StrictOpt = typer.Option(
    False,
    "--strict",
    help="Fail on the first error instead of returning partial results",
)

"""CLI application for loading Kusto database schemas."""

from functools import partial

import typer

from kqlschema.cli.commands.schema import databases, schema
from kqlschema.cli.common.context import build_loader_context
from kqlschema.cli.common.options import AuthOpt, ClusterOpt, DomainOpt, VerboseOpt
from kqlschema.cli.common.output import configure_logging

app = typer.Typer(
    help="kqlschema - load Kusto database schemas as KQL symbols",
    no_args_is_help=True,
)


@app.callback()
def _init(
    ctx: typer.Context,
    cluster: str | None = ClusterOpt,
    domain: str | None = DomainOpt,
    auth: str | None = AuthOpt,
    verbose: bool = VerboseOpt,
):
    """Configure logging and the default cluster connection."""
    configure_logging(verbose)
    # built on first use so `<command> --help` works without a cluster
    ctx.obj = partial(build_loader_context, cluster, domain=domain, auth=auth)


app.command("databases")(databases)
app.command("schema")(schema)


if __name__ == "__main__":
    app()

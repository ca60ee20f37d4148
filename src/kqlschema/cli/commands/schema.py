from __future__ import annotations

import asyncio
import re
from contextlib import nullcontext
from dataclasses import replace

import typer
from azure.kusto.data.exceptions import KustoError

from kqlschema.cli.common.context import LoaderAppContext
from kqlschema.cli.common.exits import exit_from_exc, warn_exit
from kqlschema.cli.common.options import OnClusterOpt, StrictOpt
from kqlschema.cli.common.output import out
from kqlschema.cli.tui import select_database
from kqlschema.core.errors import KqlSchemaError
from kqlschema.core.symbols import SYMBOL_KINDS, database_to_dict, filter_members


def _compile_regex_or_exit(pattern: str | None, *, option_name: str) -> re.Pattern | None:
    """Compile a regex pattern and convert invalid syntax into CLI input errors."""
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as exc:
        out.error(f"Invalid regex for {option_name}: {exc}")
        raise typer.Exit(2) from exc


def _context(ctx: typer.Context) -> LoaderAppContext:
    return ctx.obj()


def databases(
    ctx: typer.Context,
    on: str | None = OnClusterOpt,
    strict: bool = StrictOpt,
):
    """List the databases of a cluster."""
    appctx = _context(ctx)

    async def _run():
        async with appctx.loader as loader:
            return await loader.load_database_names(on, throw_on_error=strict)

    try:
        with out.status("Loading databases..."):
            names = asyncio.run(_run())
    except (KqlSchemaError, KustoError) as exc:
        exit_from_exc(exc, message=f"Failed to list databases: {exc}", code=1)

    if not names:
        warn_exit("No databases found.")

    out.header("Databases")
    out.info(f"Cluster: {on or appctx.cluster} | Databases: {len(names)}")
    out.databases_table(names)


def schema(
    ctx: typer.Context,
    database: str | None = typer.Argument(
        None, help="Database name or pretty name (prompted when omitted)"
    ),
    on: str | None = OnClusterOpt,
    name: str | None = typer.Option(None, "--name", help="Regex filter for member names"),
    kind: str | None = typer.Option(
        None,
        "--kind",
        help=f"Only show members of one kind ({', '.join(SYMBOL_KINDS)})",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the schema as JSON"),
    strict: bool = StrictOpt,
):
    """Load a database schema and show its members."""
    _compile_regex_or_exit(name, option_name="--name")
    if kind and kind.lower() not in SYMBOL_KINDS:
        out.error(f"Unknown kind '{kind}'. Expected one of: {', '.join(SYMBOL_KINDS)}.")
        raise typer.Exit(2)

    appctx = _context(ctx)

    async def _run():
        async with appctx.loader as loader:
            target = database
            if not target:
                names = await loader.load_database_names(on, throw_on_error=strict)
                picked = await select_database(names or [])
                if picked is None:
                    return None
                target = picked.name
            return await loader.load_database(target, on, throw_on_error=strict)

    status = out.status("Loading schema...") if database and not as_json else nullcontext()
    try:
        with status:
            db = asyncio.run(_run())
    except (KqlSchemaError, KustoError) as exc:
        exit_from_exc(exc, message=f"Failed to load schema: {exc}", code=1)

    if db is None:
        warn_exit("Database not found." if database else "No database selected.")

    members = filter_members(db.members, name_regex=name, kind=kind)

    if as_json:
        out.json(database_to_dict(replace(db, members=tuple(members))))
        return

    out.header(f"Database {db.name}")
    out.kv({"Pretty name": db.pretty_name or "", "Members": f"{len(members)} of {len(db.members)}"})
    if not members:
        warn_exit("No members match.")
    out.members_table(members, title="Members")

"""Per-category schema fetchers.

Each fetcher issues its control commands through the executor and turns
the decoded records into symbols. Command failures follow the caller's
`throw_on_error` choice, so a lenient fetcher that fails contributes no
symbols. Column type mapping happens here, after decoding, and an unknown
wire type is raised in both modes.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Iterable, TypeVar

from kqlschema.core.caches import AdminProvider
from kqlschema.core.commands import (
    ControlCommandExecutor,
    CslSchemaRecord,
    EntityGroupRecord,
    ExternalTableRecord,
    FunctionRecord,
    MaterializedViewRecord,
    TableColumnRecord,
    bracket_name,
)
from kqlschema.core.symbols import (
    EntityGroupSymbol,
    ExternalTableSymbol,
    FunctionSymbol,
    MaterializedViewSymbol,
    Symbol,
    TableSymbol,
)
from kqlschema.core.types import to_kql_type

logger = logging.getLogger(__name__)

L = TypeVar("L")

Fetcher = Callable[
    [ControlCommandExecutor, AdminProvider, str, bool], Awaitable[list[Symbol]]
]


def _doc(value: str | None) -> str | None:
    return value or None


def _table_schema(fragments: Iterable[str]) -> str:
    return "(" + ", ".join(fragments) + ")"


async def load_tables(
    executor: ControlCommandExecutor,
    provider: AdminProvider,
    database: str,
    throw_on_error: bool,
) -> list[Symbol]:
    """
    Load base tables from `.show database <db> schema`.

    The command returns one row per column. Rows are grouped by table in
    the order tables first appear; a table listed without columns still
    yields a symbol with an empty schema.
    """
    rows = await executor.execute(
        provider,
        database,
        f".show database {bracket_name(database)} schema",
        TableColumnRecord,
        throw_on_error=throw_on_error,
    )

    groups: dict[str, list[TableColumnRecord]] = {}
    for row in rows:
        if row.table_name:
            groups.setdefault(row.table_name, []).append(row)

    tables: list[Symbol] = []
    for table_name, columns in groups.items():
        schema = _table_schema(
            f"{c.column_name}:{to_kql_type(c.column_type)}"
            for c in columns
            if c.column_name
        )
        doc = next((c.doc_string for c in columns if c.doc_string), None)
        tables.append(TableSymbol(name=table_name, schema=schema, description=doc))
    return tables


async def _list_then_detail(
    executor: ControlCommandExecutor,
    provider: AdminProvider,
    database: str,
    throw_on_error: bool,
    items: list[L],
    name_of: Callable[[L], str],
    detail_command: Callable[[str], str],
) -> list[tuple[L, CslSchemaRecord]]:
    """
    Fetch the cslschema of each listed item, one after another.

    An item is kept only when its detail command returns at least one row;
    the first row is used. Items whose detail comes back empty are skipped.
    """
    kept: list[tuple[L, CslSchemaRecord]] = []
    for item in items:
        name = name_of(item)
        details = await executor.execute(
            provider,
            database,
            detail_command(name),
            CslSchemaRecord,
            throw_on_error=throw_on_error,
        )
        if not details:
            logger.debug("No schema returned for '%s'; skipping", name)
            continue
        kept.append((item, details[0]))
    return kept


async def load_external_tables(
    executor: ControlCommandExecutor,
    provider: AdminProvider,
    database: str,
    throw_on_error: bool,
) -> list[Symbol]:
    """Load external tables: list them, then fetch each table's schema."""
    listed = await executor.execute(
        provider,
        database,
        ".show external tables | project TableName, DocString",
        ExternalTableRecord,
        throw_on_error=throw_on_error,
    )
    pairs = await _list_then_detail(
        executor,
        provider,
        database,
        throw_on_error,
        listed,
        name_of=lambda et: et.table_name,
        detail_command=lambda name: (
            f".show external table {bracket_name(name)} cslschema"
            " | project TableName, Schema"
        ),
    )
    return [
        ExternalTableSymbol(
            name=et.table_name,
            schema=_table_schema([detail.schema]),
            description=_doc(et.doc_string),
        )
        for et, detail in pairs
    ]


async def load_materialized_views(
    executor: ControlCommandExecutor,
    provider: AdminProvider,
    database: str,
    throw_on_error: bool,
) -> list[Symbol]:
    """Load materialized views: list them, then fetch each view's schema."""
    listed = await executor.execute(
        provider,
        database,
        ".show materialized-views | project Name, Query, DocString",
        MaterializedViewRecord,
        throw_on_error=throw_on_error,
    )
    pairs = await _list_then_detail(
        executor,
        provider,
        database,
        throw_on_error,
        listed,
        name_of=lambda mv: mv.name,
        detail_command=lambda name: (
            f".show materialized-view {bracket_name(name)} cslschema"
            " | project TableName, Schema"
        ),
    )
    return [
        MaterializedViewSymbol(
            name=mv.name,
            schema=_table_schema([detail.schema]),
            query=mv.query,
            description=_doc(mv.doc_string),
        )
        for mv, detail in pairs
    ]


async def load_functions(
    executor: ControlCommandExecutor,
    provider: AdminProvider,
    database: str,
    throw_on_error: bool,
) -> list[Symbol]:
    """Load stored functions from `.show functions`."""
    rows = await executor.execute(
        provider, database, ".show functions", FunctionRecord, throw_on_error=throw_on_error
    )
    return [
        FunctionSymbol(
            name=f.name,
            parameters=f.parameters,
            body=f.body,
            description=_doc(f.doc_string),
        )
        for f in rows
    ]


async def load_entity_groups(
    executor: ControlCommandExecutor,
    provider: AdminProvider,
    database: str,
    throw_on_error: bool,
) -> list[Symbol]:
    """Load entity groups from `.show entity_groups`."""
    rows = await executor.execute(
        provider,
        database,
        ".show entity_groups | project Name, Entities",
        EntityGroupRecord,
        throw_on_error=throw_on_error,
    )
    return [EntityGroupSymbol(name=eg.name, definition=eg.entities) for eg in rows]


# Merge order of a database's members.
CATEGORY_FETCHERS: tuple[Fetcher, ...] = (
    load_tables,
    load_external_tables,
    load_materialized_views,
    load_functions,
    load_entity_groups,
)

"""Core symbol models for a Kusto database schema.

These models represent schema entities in a simple, immutable form that a
KQL analysis engine can consume. They are intentionally free of
azure-kusto-data types and UI/CLI concerns.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import ClassVar, Iterable, Union


@dataclass(frozen=True)
class DatabaseName:
    """Canonical database name paired with its display (pretty) name."""

    name: str
    pretty_name: str | None = None


@dataclass(frozen=True)
class TableSymbol:
    """
    A table and its columns.

    Attributes:
        name: Table name.
        schema: Column descriptor in the form `(col:type, col:type)`.
        description: Optional doc string of the table.
    """

    kind: ClassVar[str] = "table"

    name: str
    schema: str
    description: str | None = None


@dataclass(frozen=True)
class ExternalTableSymbol(TableSymbol):
    """A table whose data lives outside the cluster."""

    kind: ClassVar[str] = "external_table"


@dataclass(frozen=True)
class MaterializedViewSymbol(TableSymbol):
    """A materialized view: table shape plus the query that feeds it."""

    kind: ClassVar[str] = "materialized_view"

    query: str = ""


@dataclass(frozen=True)
class FunctionSymbol:
    """A stored function with its parameter list and body."""

    kind: ClassVar[str] = "function"

    name: str
    parameters: str
    body: str
    description: str | None = None


@dataclass(frozen=True)
class EntityGroupSymbol:
    """A named group of entities, kept as raw definition text."""

    kind: ClassVar[str] = "entity_group"

    name: str
    definition: str


Symbol = Union[
    TableSymbol,
    ExternalTableSymbol,
    MaterializedViewSymbol,
    FunctionSymbol,
    EntityGroupSymbol,
]

SYMBOL_KINDS = (
    TableSymbol.kind,
    ExternalTableSymbol.kind,
    MaterializedViewSymbol.kind,
    FunctionSymbol.kind,
    EntityGroupSymbol.kind,
)


@dataclass(frozen=True)
class DatabaseSymbol:
    """
    A database and every member symbol loaded for it.

    Members keep load order. Names are not required to be unique.
    """

    name: str
    pretty_name: str | None = None
    members: tuple[Symbol, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "members", tuple(self.members))

    def get_member(self, name: str) -> Symbol | None:
        """Return the first member with the given name, if any."""
        for member in self.members:
            if member.name == name:
                return member
        return None

    def members_of_kind(self, kind: str) -> list[Symbol]:
        """Return members of one kind (e.g. `table`, `function`)."""
        return [m for m in self.members if m.kind == kind]


def filter_members(
    members: Iterable[Symbol],
    name_regex: str | None = None,
    kind: str | None = None,
) -> list[Symbol]:
    """Filter members by regex on name and by kind (keep all when unset)."""
    rx = re.compile(name_regex) if name_regex else None
    want_kind = kind.lower() if kind else None
    return [
        m
        for m in members
        if (rx is None or rx.search(m.name))
        and (want_kind is None or m.kind == want_kind)
    ]


def symbol_to_dict(symbol: Symbol) -> dict[str, object]:
    """Return a JSON-ready dict of a member symbol, tagged with its kind."""
    return {"kind": symbol.kind, **asdict(symbol)}


def database_to_dict(database: DatabaseSymbol) -> dict[str, object]:
    """Return a JSON-ready dict of a database and its members."""
    return {
        "name": database.name,
        "pretty_name": database.pretty_name,
        "members": [symbol_to_dict(m) for m in database.members],
    }

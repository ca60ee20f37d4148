"""Control command execution and result decoding.

A control command returns a tabular result. Rows are decoded into small
frozen record types, column by column, using the column name recorded in
each field's metadata. Failures are captured in a `CommandResult`, and the
caller decides through `unwrap` whether they are raised or turned into an
empty result.
"""

from __future__ import annotations

import json
import logging
from dataclasses import MISSING, dataclass, field, fields
from typing import Any, Generic, Mapping, Sequence, TypeVar

from kqlschema.core.caches import AdminProvider
from kqlschema.core.errors import RecordDecodeError

logger = logging.getLogger(__name__)

R = TypeVar("R")


def column(name: str, default: Any = "") -> Any:
    """Declare a record field read from the result column `name`."""
    return field(default=default, metadata={"column": name})


def bracket_name(name: str) -> str:
    """Quote an identifier for use inside a command: `['name']`."""
    escaped = name.replace("\\", "\\\\").replace("'", "\\'")
    return f"['{escaped}']"


# Record shapes, one per command.


@dataclass(frozen=True)
class DatabaseNameRecord:
    database_name: str = column("DatabaseName", MISSING)
    pretty_name: str = column("PrettyName")


@dataclass(frozen=True)
class TableColumnRecord:
    table_name: str = column("TableName")
    column_name: str = column("ColumnName")
    column_type: str = column("ColumnType")
    doc_string: str = column("DocString")


@dataclass(frozen=True)
class ExternalTableRecord:
    table_name: str = column("TableName")
    doc_string: str = column("DocString")


@dataclass(frozen=True)
class MaterializedViewRecord:
    name: str = column("Name")
    query: str = column("Query")
    doc_string: str = column("DocString")


@dataclass(frozen=True)
class CslSchemaRecord:
    table_name: str = column("TableName")
    schema: str = column("Schema")


@dataclass(frozen=True)
class FunctionRecord:
    name: str = column("Name")
    parameters: str = column("Parameters")
    body: str = column("Body")
    folder: str = column("Folder")
    doc_string: str = column("DocString")


@dataclass(frozen=True)
class EntityGroupRecord:
    name: str = column("Name")
    entities: str = column("Entities")


def _as_text(value: Any, column_name: str) -> str:
    if isinstance(value, str):
        return value
    # dynamic columns arrive parsed
    if isinstance(value, (dict, list)):
        try:
            return json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise RecordDecodeError(
                f"Column '{column_name}' value {value!r} is not valid JSON: {exc}"
            ) from exc
    return str(value)


def decode_rows(record_type: type[R], rows: Sequence[Mapping[str, Any]]) -> list[R]:
    """
    Decode result rows into record instances.

    Columns are matched by name; extra columns are ignored and missing or
    null columns fall back to the field default. Dynamic (JSON) values are
    kept as JSON text.

    Raises:
        RecordDecodeError: if a required column is missing or a dynamic value
            cannot be serialized.
    """
    fields_ = [
        (f.name, f.metadata.get("column", f.name), f.default)
        for f in fields(record_type)
    ]
    records: list[R] = []
    for row in rows:
        values: dict[str, Any] = {}
        for attr, column_name, default in fields_:
            value = row.get(column_name)
            if value is None:
                if default is MISSING:
                    raise RecordDecodeError(f"Column '{column_name}' is missing")
                continue
            values[attr] = _as_text(value, column_name)
        records.append(record_type(**values))
    return records


@dataclass(frozen=True)
class CommandResult(Generic[R]):
    """Decoded records of one command, or the error that prevented them."""

    command: str
    records: list[R] = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self, throw_on_error: bool) -> list[R]:
        """Return the records; on error raise it (strict) or return [] (lenient)."""
        if self.ok:
            return self.records
        if throw_on_error:
            raise self.error
        logger.warning("Command '%s' failed: %s", self.command, self.error)
        return []


class ControlCommandExecutor:
    """Runs control commands through a provider and decodes their rows."""

    async def run(
        self,
        provider: AdminProvider,
        database: str | None,
        command: str,
        record_type: type[R],
    ) -> CommandResult[R]:
        """Execute `command` in `database`, capturing any failure in the result."""
        logger.debug("Executing '%s' in database '%s'", command, database or "")
        try:
            rows = await provider.execute_control_command(database, command)
            records = decode_rows(record_type, rows) if rows is not None else []
        except Exception as exc:  # noqa: BLE001
            return CommandResult(command=command, error=exc)
        return CommandResult(command=command, records=records)

    async def execute(
        self,
        provider: AdminProvider,
        database: str | None,
        command: str,
        record_type: type[R],
        *,
        throw_on_error: bool = False,
    ) -> list[R]:
        """Execute `command` and return its records, honoring `throw_on_error`."""
        result = await self.run(provider, database, command, record_type)
        return result.unwrap(throw_on_error)

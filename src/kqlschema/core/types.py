"""Mapping from wire column types to KQL scalar types.

The `.show database schema` command reports column types as CLR type
names. The set is fixed; an unknown name is an error, not a fallback.
"""

from __future__ import annotations

from kqlschema.core.errors import UnknownColumnTypeError

WIRE_TO_KQL_TYPES: dict[str, str] = {
    "System.SByte": "bool",
    "System.DateTime": "datetime",
    "System.Data.SqlTypes.SqlDecimal": "decimal",
    "System.Object": "dynamic",
    "System.Guid": "guid",
    "System.Int32": "int",
    "System.Int64": "long",
    "System.Double": "real",
    "System.String": "string",
    "System.TimeSpan": "timespan",
}


def to_kql_type(wire_type: str) -> str:
    """Return the KQL type name for a wire type name.

    Raises:
        UnknownColumnTypeError: if the wire type is not part of the mapping.
    """
    try:
        return WIRE_TO_KQL_TYPES[wire_type]
    except KeyError:
        raise UnknownColumnTypeError(wire_type) from None

"""Exception hierarchy for schema loading."""

from __future__ import annotations


class KqlSchemaError(Exception):
    """Base class for errors raised by kqlschema."""


class AuthError(KqlSchemaError):
    """Raised when a cluster connection lacks usable authentication settings."""


class DatabaseNotFoundError(KqlSchemaError, LookupError):
    """Raised when a database does not exist on the target cluster."""

    def __init__(self, database: str, cluster: str) -> None:
        super().__init__(
            f"Specified database name '{database}' does not exist in cluster '{cluster}'"
        )
        self.database = database
        self.cluster = cluster


class UnknownColumnTypeError(KqlSchemaError, LookupError):
    """Raised when a column's wire type has no KQL equivalent."""

    def __init__(self, wire_type: str) -> None:
        super().__init__(f"Unknown column type '{wire_type}'")
        self.wire_type = wire_type


class RecordDecodeError(KqlSchemaError, ValueError):
    """Raised when a result row cannot be decoded into its record type."""

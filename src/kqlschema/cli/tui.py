"""Terminal UI utilities for kqlschema."""

from __future__ import annotations

import questionary

from kqlschema.cli.common.tui_style import QUESTIONARY_STYLE_SELECT
from kqlschema.core.symbols import DatabaseName

_MAX_DB_NAME_WIDTH = 64


def _truncate(text: str, max_len: int) -> str:
    """Return text capped at max_len characters using an ASCII ellipsis."""
    if max_len <= 3 or len(text) <= max_len:
        return text[:max_len]
    return f"{text[: max_len - 3]}..."


def _database_choice_title(db: DatabaseName, *, name_width: int) -> str:
    """Format one database as `<name>  (<pretty name>)` with aligned pretty names."""
    short_name = _truncate(db.name, _MAX_DB_NAME_WIDTH)
    if not db.pretty_name or db.pretty_name == db.name:
        return short_name
    return f"{short_name.ljust(name_width)}  ({db.pretty_name})"


async def select_database(databases: list[DatabaseName]) -> DatabaseName | None:
    """Display a select prompt to pick one database.

    Args:
        databases: Databases to choose from.

    Returns:
        The selected database, or None if the prompt was cancelled.
    """
    if not databases:
        return None

    shown_names = [_truncate(db.name, _MAX_DB_NAME_WIDTH) for db in databases]
    name_width = max((len(name) for name in shown_names), default=0)

    choices = [
        questionary.Choice(
            title=_database_choice_title(db, name_width=name_width),
            value=db,
        )
        for db in databases
    ]

    return await questionary.select(
        "Select database:",
        choices=choices,
        style=QUESTIONARY_STYLE_SELECT,
    ).ask_async()

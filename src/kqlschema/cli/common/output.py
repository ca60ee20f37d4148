"""Output formatting utilities for the CLI."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

_THEME = Theme(
    {
        "ok": "bold green",
        "warn": "yellow",
        "err": "bold red",
        "title": "bold cyan",
        "meta": "dim",
    }
)

console = Console(theme=_THEME)


def configure_logging(verbose: bool) -> None:
    """Route library logging to the console (debug level when verbose)."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
        force=True,
    )
    # azure/aiohttp are noisy at debug level
    logging.getLogger("azure").setLevel(logging.WARNING)


@dataclass(frozen=True)
class Out:
    """Output formatter for CLI messages and tables."""

    def info(self, msg: str) -> None:
        """Print an info message."""
        console.print(f"[title]›[/] {msg}")

    @contextmanager
    def status(self, msg: str):
        """Show a transient status spinner while work is in progress."""
        with console.status(msg, spinner="dots"):
            yield

    def success(self, msg: str) -> None:
        """Print a success message."""
        console.print(f"[ok]✓[/] {msg}")

    def warn(self, msg: str) -> None:
        """Print a warning message."""
        console.print(f"[warn]⚠[/] {msg}")

    def error(self, msg: str) -> None:
        """Print an error message."""
        console.print(f"[err]✗[/] {msg}")

    def header(self, title: str) -> None:
        """Print a header message."""
        console.print(f"[title]{title}[/]")

    def kv(self, items: Mapping[str, Any]) -> None:
        """Print key-value pairs."""
        for k, v in items.items():
            console.print(f"[meta]{k}[/]: {v}")

    def json(self, data: Any) -> None:
        """Print data as highlighted JSON."""
        console.print_json(data=data)

    def databases_table(self, databases: Iterable[Any], title: str = "Databases") -> None:
        """
        Expects objects with .name and .pretty_name
        (e.g. kqlschema.core.symbols.DatabaseName)
        """
        t = Table(title=title, show_lines=False)
        t.add_column("Name", style="ok", no_wrap=True)
        t.add_column("Pretty name", style="meta")

        for d in databases:
            t.add_row(escape(d.name), escape(d.pretty_name or ""))

        console.print(t)

    def members_table(self, members: Iterable[Any], title: str = "Members") -> None:
        """
        Render schema members of a database.

        Tables and views show their column schema, functions their
        parameters, entity groups their definition.
        """
        t = Table(title=title, show_lines=False)
        t.add_column("Kind", style="meta", no_wrap=True)
        t.add_column("Name", style="ok")
        t.add_column("Schema / parameters")
        t.add_column("Description", style="meta")

        for m in members:
            shape = (
                getattr(m, "schema", None)
                or getattr(m, "parameters", None)
                or getattr(m, "definition", None)
                or ""
            )
            description = getattr(m, "description", None) or ""
            t.add_row(m.kind, escape(m.name), escape(shape), escape(description))

        console.print(t)


out = Out()

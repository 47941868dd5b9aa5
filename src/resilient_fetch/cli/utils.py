"""
CLI utility helpers: consoles and output formatting.
"""

from __future__ import annotations

import json
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from resilient_fetch.core.errors import ResilienceError

console = Console()
err_console = Console(stderr=True)


def fail(error: BaseException) -> NoReturn:
    """Print an error to stderr and exit with code 1."""
    if isinstance(error, ResilienceError):
        label = f"{type(error).__name__} ({error.category.value})"
    else:
        label = type(error).__name__
    err_console.print(f"[bold red]Error[/bold red] {label}: {escape(str(error))}")
    raise typer.Exit(code=1)


def print_body(body: str, *, as_json: bool = False) -> None:
    """Print a response body, pretty-printed when it is JSON."""
    if as_json:
        try:
            payload: Any = json.loads(body)
        except ValueError:
            console.print(body, markup=False, highlight=False)
            return
        console.print_json(json.dumps(payload, default=str))
        return
    console.print(body, markup=False, highlight=False)


def print_table(rows: list[dict[str, Any]], *, title: str = "") -> None:
    """Render a list of dicts as a Rich table."""
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*(str(v) for v in row.values()))
    console.print(table)


def print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {escape(str(v))}")

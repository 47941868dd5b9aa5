"""
CLI: ``resilient-fetch config``: configuration inspection.
"""

from __future__ import annotations

import typer
from pydantic import ValidationError
from rich.markup import escape

from resilient_fetch.cli.utils import console, err_console, print_dict

app = typer.Typer(no_args_is_help=True)


@app.command("show")
def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json, env"),
) -> None:
    """Show the effective settings."""
    from resilient_fetch.core.settings import get_settings

    try:
        settings = get_settings(_force_reload=True)
    except ValidationError as e:
        err_console.print(f"[red]Configuration Error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1) from e

    if format == "json":
        console.print_json(settings.model_dump_json())
        return

    if format == "env":
        for key, value in sorted(settings.model_dump().items()):
            console.print(f"RESILIENT_FETCH_{key.upper()}={value}", markup=False)
        return

    print_dict(settings.model_dump(), title="Settings")

"""
Root Typer application for the resilient-fetch CLI.
"""

from __future__ import annotations

import asyncio

import httpx
import typer
from pydantic import ValidationError
from typer import Typer

from resilient_fetch.cli.config import app as config_app
from resilient_fetch.cli.utils import console, fail, print_body, print_table
from resilient_fetch.core.errors import ResilienceError
from resilient_fetch.core.logging import configure_logging
from resilient_fetch.core.settings import get_settings

app = Typer(
    name="resilient-fetch",
    help="Retry, backoff and deadlines for flaky HTTP reads.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("resilient-fetch")
        except PackageNotFoundError:
            from resilient_fetch import __version__ as v
        typer.echo(f"resilient-fetch {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every attempt at DEBUG."),
) -> None:
    """resilient-fetch CLI: fetch URLs with retry and timeouts, inspect backoff."""
    try:
        settings = get_settings()
    except ValidationError:
        # `config show` reports the problem; keep default logging meanwhile.
        configure_logging(level="DEBUG" if verbose else "INFO")
        return
    configure_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_format=settings.json_logs,
        service=settings.service_name,
    )


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("get")
def get(
    url: str = typer.Argument(..., help="URL to fetch."),
    attempts: int | None = typer.Option(None, "--attempts", "-n", help="Total attempts."),
    delay_ms: float | None = typer.Option(None, "--delay-ms", "-d", help="Delay after the first failure."),
    timeout_ms: float | None = typer.Option(None, "--timeout-ms", "-t", help="Per-attempt deadline."),
    header: list[str] | None = typer.Option(None, "--header", "-H", help="Extra header, 'Name: value'."),
    as_json: bool = typer.Option(False, "--json", help="Pretty-print a JSON body."),
) -> None:
    """GET a URL with retry and a per-attempt deadline; print the body."""
    from resilient_fetch.http import fetch_response, parse_header

    try:
        headers = dict(parse_header(h) for h in header or [])
    except ValueError as e:
        fail(e)

    try:
        response = asyncio.run(
            fetch_response(
                url,
                headers=headers,
                max_attempts=attempts,
                retry_delay_ms=delay_ms,
                timeout_ms=timeout_ms,
            )
        )
    except (httpx.HTTPError, ResilienceError, ValidationError) as e:
        fail(e)

    print_body(response.text, as_json=as_json)


@app.command("schedule")
def schedule(
    attempts: int | None = typer.Option(None, "--attempts", "-n", help="Total attempts."),
    delay_ms: float | None = typer.Option(None, "--delay-ms", "-d", help="Delay after the first failure."),
    jitter_ms: float | None = typer.Option(None, "--jitter-ms", "-j", help="Jitter ceiling."),
) -> None:
    """Show the backoff window before each retry."""
    from resilient_fetch.execution.retry import build_schedule

    try:
        settings = get_settings()
    except ValidationError as e:
        fail(e)
    attempts = attempts if attempts is not None else settings.max_attempts
    try:
        backoff = build_schedule(
            attempts,
            delay_ms if delay_ms is not None else settings.initial_delay_ms,
            jitter_ms if jitter_ms is not None else settings.jitter_ms,
        )
    except ResilienceError as e:
        fail(e)

    rows = [
        {"after attempt": n, "min ms": f"{low:g}", "max ms (excl.)": f"{high:g}"}
        for n, low, high in backoff.windows(attempts)
    ]
    if not rows:
        console.print("[dim]Single attempt: no retries, no delay.[/dim]")
        return
    print_table(rows, title=f"Backoff for {attempts} attempts")


# ── Sub-command registration ─────────────────────────────────────────────

app.add_typer(config_app, name="config", help="Configuration inspection.")

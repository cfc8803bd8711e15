"""
CLI utility helpers — consoles, settings and error/result rendering.
"""

from __future__ import annotations

import json
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from lockstep.core.errors import AggregateFailure, LockstepError
from lockstep.core.logging import configure_logging
from lockstep.core.settings import LockstepSettings
from lockstep.execution.scheduler import ScheduleResult

console = Console()
err_console = Console(stderr=True)


# ── Settings helper ──────────────────────────────────────────────────────


def load_settings(
    *,
    jobs: int | None = None,
    force: bool | None = None,
    standalone: bool | None = None,
    verbose: bool = False,
) -> LockstepSettings:
    """Read ``LOCKSTEP_*`` settings, apply CLI overrides and configure logging."""
    overrides: dict[str, Any] = {}
    if jobs is not None:
        overrides["jobs"] = jobs
    if force:
        overrides["force"] = True
    if standalone:
        overrides["standalone"] = True
    if verbose:
        overrides["log_level"] = "DEBUG"

    settings = LockstepSettings(**overrides)
    configure_logging(level=settings.log_level, json_format=settings.json_logs)
    return settings


# ── Output helpers ───────────────────────────────────────────────────────


def print_error(error: BaseException) -> None:
    """Render a run failure. Aggregates list every failed item."""
    if isinstance(error, AggregateFailure):
        err_console.print(f"[bold red]{len(error.failures)} item(s) failed[/bold red]")
        for failure in error.failures:
            err_console.print(f"  [red]✗[/red] [bold]{escape(failure.item)}[/bold]: {escape(str(failure.error))}")
        return
    label = type(error).__name__ if isinstance(error, LockstepError) else "Error"
    err_console.print(f"[bold red]{label}[/bold red]: {escape(str(error))}")


def print_result(result: ScheduleResult, *, as_json: bool = False) -> None:
    """Render a successful run: a summary table, then any result messages."""
    if as_json:
        console.print_json(json.dumps(result.to_dict(), default=str))
        return

    if not result.records:
        console.print("[dim]No items.[/dim]")
        return

    table = Table(title=f"run {result.run_id}", show_lines=False, pad_edge=False)
    table.add_column("item")
    table.add_column("state")
    table.add_column("worker")
    for record in result.records:
        table.add_row(escape(record.name), record.state.value, str(record.worker_id))
    console.print(table)

    for name, message in result.result_messages.items():
        console.print(f"\n[bold]Post-install message from {escape(name)}:[/bold]")
        console.print(escape(message))

    console.print(
        f"\n[green]{len(result)} item(s) processed[/green] "
        f"[dim]in {result.duration_seconds:.2f}s[/dim]"
    )


def fail(error: BaseException) -> typer.Exit:
    """Print *error* and return the Exit to raise."""
    print_error(error)
    return typer.Exit(code=1)

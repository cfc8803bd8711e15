"""
CLI: ``lockstep run`` / ``lockstep check`` — process or validate a manifest.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.markup import escape

from lockstep.cli.utils import console, fail, load_settings, print_result
from lockstep.core.errors import LockstepError


def run(
    manifest: Path = typer.Argument(..., exists=True, dir_okay=False, help="Manifest file (YAML or JSON)"),
    jobs: int | None = typer.Option(None, "--jobs", "-j", min=1, help="Parallel jobs (workers = jobs - 1, min 1)"),  # noqa: UP007
    force: bool = typer.Option(False, "--force", help="Passed to every command as LOCKSTEP_FORCE=1"),
    standalone: bool = typer.Option(False, "--standalone", help="Passed to every command as LOCKSTEP_STANDALONE=1"),
    timeout: float | None = typer.Option(None, "--timeout", help="Per-command timeout in seconds"),  # noqa: UP007
    dry_run: bool = typer.Option(False, "--dry-run", help="Schedule without running any command"),
    fail_items: list[str] | None = typer.Option(  # noqa: UP007
        None, "--fail", help="With --dry-run: report this item as failed (repeatable)"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Run every item in MANIFEST, in dependency order, on parallel workers.

    Example::

        lockstep run Lockfile.yaml --jobs 4
        lockstep run Lockfile.yaml --dry-run --fail rails
    """
    from lockstep.execution.executors import CommandExecutor, StubExecutor
    from lockstep.execution.manifest import Manifest
    from lockstep.execution.scheduler import ParallelScheduler

    if fail_items and not dry_run:
        raise typer.BadParameter("only applies together with --dry-run", param_hint="--fail")

    settings = load_settings(jobs=jobs, force=force, standalone=standalone, verbose=verbose)

    try:
        items = Manifest.from_file(manifest).to_items()
    except LockstepError as exc:
        raise fail(exc) from exc

    if dry_run:
        executor = StubExecutor(fail=fail_items or ())
    else:
        executor = CommandExecutor(
            force=settings.force,
            standalone=settings.standalone,
            timeout=timeout,
            cwd=manifest.resolve().parent,
        )

    try:
        result = ParallelScheduler(executor, settings.max_workers).run(items)
    except LockstepError as exc:
        raise fail(exc) from exc

    print_result(result, as_json=as_json)


def check(
    manifest: Path = typer.Argument(..., exists=True, dir_okay=False, help="Manifest file (YAML or JSON)"),
    as_json: bool = typer.Option(False, "--json", help="Print the order as JSON"),
) -> None:
    """Validate MANIFEST (duplicates, unknown dependencies, cycles) and print a valid order."""
    from lockstep.execution.graph import check_acyclic, check_unique_names, topological_order
    from lockstep.execution.manifest import Manifest
    from lockstep.execution.record import build_records

    try:
        records = build_records(Manifest.from_file(manifest).to_items())
        all_names = check_unique_names(records)
        for record in records:
            record.dependency_names(all_names)
        check_acyclic(records, all_names)
        order = topological_order(records, all_names)
    except LockstepError as exc:
        raise fail(exc) from exc

    if as_json:
        console.print_json(json.dumps({"valid": True, "order": order}))
        return

    console.print(f"[green]✓[/green] Manifest is valid ({len(order)} items)")
    for position, name in enumerate(order, start=1):
        console.print(f"  {position:>3}. {escape(name)}")

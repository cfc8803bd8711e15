"""
Root Typer application for the lockstep CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from lockstep.cli.run import check, run

app = Typer(
    name="lockstep",
    help="lockstep — run dependency-ordered items on parallel workers.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from lockstep import __version__

        typer.echo(f"lockstep {__version__}")
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
) -> None:
    """lockstep CLI — run and validate item manifests."""


app.command("run")(run)
app.command("check")(check)

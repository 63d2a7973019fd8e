"""Main Typer app definition and routing.

This is the canonical entry point for the CLI. The app, callback, and
command registrations are all defined here.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from capaudit import __version__
from capaudit.cli.common import get_console, set_project_dir

# Create Typer app
app = typer.Typer(
    name="capaudit",
    help="Verify that event capability documentation matches derived requirements",
    add_completion=False,
)

# Rich console for output - use singleton from common module
console = get_console()


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"capaudit version {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    project: Optional[str] = typer.Option(
        None,
        "--project",
        "-p",
        help="Project directory holding capaudit.yaml (default: current directory)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Log discovery and check details",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """
    capaudit - capability documentation consistency checks.

    Compares the intents, cache flags and permissions documented on every
    event type against what the library's derivation logic requires.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if project:
        project_path = Path(project)
        if not project_path.is_dir():
            console.print(f"[red]Error: Project directory not found: {project}[/red]")
            raise typer.Exit(1)
        set_project_dir(str(project_path.absolute()))

    # If no subcommand and no --help, show help
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(0)


# =========================================================================
# Command Registration
# =========================================================================

from capaudit.cli.commands import explain_command, run_command, types_command

app.command("run")(run_command)
app.command("types")(types_command)
app.command("explain")(explain_command)


def cli_main() -> None:
    """Entry point for the CLI."""
    app()


__all__ = ["app", "cli_main"]

"""Audit CLI commands.

Commands:
- run: Run the full consistency audit and exit 1 on any failure
- run --json: Emit the report as JSON instead of tables
- types: Show the discovered event type hierarchy
- explain TYPE: Show documented vs derived requirements for one type
"""

from __future__ import annotations

import json
from typing import Optional

import typer

from capaudit.cli.common import get_console, load_config_or_exit
from capaudit.cli.display import (
    build_explain_table,
    build_hierarchy_tree,
    display_failures,
    display_lines,
    display_summary,
    display_warnings,
)
from capaudit.engine import build_engine, run_audit
from capaudit.errors import ReferenceResolutionError

console = get_console()


def run_command(
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file (default: capaudit.yaml)",
    ),
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        "-w",
        min=1,
        help="Worker threads for extraction and derivation (default: from config)",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Print the report as JSON",
    ),
    plain: bool = typer.Option(
        False,
        "--plain",
        help="Print one diagnostic line per failure instead of tables",
    ),
    show_warnings: bool = typer.Option(
        False,
        "--show-warnings",
        help="List undocumented types",
    ),
) -> None:
    """
    Check documented capability requirements against derived ones.

    Exits with status 1 if any type's documentation disagrees with the
    derivation function or drops obligations inherited from a supertype.
    """
    audit_config = load_config_or_exit(config)
    try:
        if json_output:
            report = run_audit(audit_config, workers=workers)
            typer.echo(json.dumps(report.to_dict(), indent=2))
        else:
            console.print(f"[cyan]Auditing {audit_config.namespace}...[/cyan]")
            console.print()

            with console.status("[yellow]Checking...[/yellow]"):
                report = run_audit(audit_config, workers=workers)

            if plain:
                display_lines(report, console)
            else:
                display_failures(report, console)
            if show_warnings:
                display_warnings(report, console)
            display_summary(report, console)

        if not report.passed:
            raise typer.Exit(1)

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def types_command(
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file (default: capaudit.yaml)",
    ),
) -> None:
    """
    Show the discovered event type hierarchy.
    """
    audit_config = load_config_or_exit(config)
    try:
        engine = build_engine(audit_config)
        console.print(build_hierarchy_tree(engine.index, audit_config.namespace))
        console.print(f"[dim]{len(engine.index)} types[/dim]")
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def explain_command(
    type_name: str = typer.Argument(..., help="Qualified or simple name of the event type"),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file (default: capaudit.yaml)",
    ),
) -> None:
    """
    Show documented, excused and derived requirements for one event type.
    """
    audit_config = load_config_or_exit(config)
    try:
        engine = build_engine(audit_config)
        matches = engine.index.find(type_name)
        if not matches:
            console.print(f"[red]Error:[/red] Unknown event type: {type_name}")
            raise typer.Exit(1)
        if len(matches) > 1:
            console.print(f"[yellow]Ambiguous name {type_name}, candidates:[/yellow]")
            for match in matches:
                console.print(f"  - {match.name}")
            raise typer.Exit(1)

        event_type = matches[0]
        policy = engine.policy
        rows = []
        for taxonomy in engine.taxonomies:
            excused = (
                policy.exceptions.for_type(event_type.name, taxonomy.name)
                | policy.ignored_members_of(taxonomy.name)
            )
            try:
                documented = engine.extractor.extract(event_type, taxonomy)
                unresolved = None
            except ReferenceResolutionError as e:
                documented, unresolved = None, e.reference
            rows.append((
                taxonomy.name,
                documented,
                excused,
                engine.registry.required_for(event_type, taxonomy),
                policy.is_ignored(event_type.name, taxonomy.name),
                unresolved,
            ))
        console.print(build_explain_table(event_type, rows))

        if event_type.supertype:
            console.print(f"[dim]Extends:[/dim] {', '.join(event_type.direct_supertypes)}")
        if event_type.description is not None:
            links = engine.extractor.links(event_type.description)
            console.print(f"[dim]Links:[/dim] {', '.join(links) or 'none'}")

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

"""Display helpers and formatters for the CLI.

Contains Rich formatting utilities for reports, hierarchies and type details.
This module should NOT import from the command modules to avoid circular imports.
"""
from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from capaudit.hierarchy import TypeHierarchyIndex
from capaudit.models import AuditReport, EventType, format_members
from capaudit.reporter import format_inheritance, format_mismatch, format_resolution


def _members_cell(members: Optional[frozenset[str]]) -> str:
    if members is None:
        return "[dim]n/a[/dim]"
    if not members:
        return "[dim]{}[/dim]"
    return format_members(members)


def display_failures(report: AuditReport, console: Console) -> None:
    """Display failures grouped by check in Rich tables."""
    results = report.results
    if report.passed:
        console.print("[green]Documentation matches derived requirements![/green]")
        return

    if results.resolution_failures:
        table = Table(title="[red]Unresolvable References[/red]", show_lines=True)
        table.add_column("Taxonomy", style="cyan")
        table.add_column("Type")
        table.add_column("Reference", style="red")
        for failure in results.resolution_failures:
            table.add_row(failure.taxonomy, failure.type_name, failure.reference)
        console.print(table)
        console.print()

    if results.mismatches:
        table = Table(title="[red]Documentation Mismatches[/red]", show_lines=True)
        table.add_column("Taxonomy", style="cyan")
        table.add_column("Type")
        table.add_column("Documented")
        table.add_column("Derived")
        table.add_column("Undocumented", style="red")
        table.add_column("Not derived", style="yellow")
        for failure in results.mismatches:
            table.add_row(
                failure.taxonomy,
                failure.type_name,
                _members_cell(failure.documented),
                _members_cell(failure.derived),
                ", ".join(sorted(failure.missing)),
                ", ".join(sorted(failure.unexpected)),
            )
        console.print(table)
        console.print()

    if results.inheritance_failures:
        table = Table(title="[yellow]Inheritance Violations[/yellow]", show_lines=True)
        table.add_column("Taxonomy", style="cyan")
        table.add_column("Subtype")
        table.add_column("Missing", style="red")
        table.add_column("Inherited from", style="dim")
        for failure in results.inheritance_failures:
            table.add_row(
                failure.taxonomy,
                failure.type_name,
                ", ".join(sorted(failure.missing)),
                failure.ancestor,
            )
        console.print(table)
        console.print()


def display_lines(report: AuditReport, console: Console) -> None:
    """Plain diagnostic lines, one per failure (for CI logs)."""
    results = report.results
    for failure in results.resolution_failures:
        console.print(format_resolution(failure), markup=False, highlight=False, soft_wrap=True)
    for failure in results.mismatches:
        console.print(format_mismatch(failure), markup=False, highlight=False, soft_wrap=True)
    for failure in results.inheritance_failures:
        console.print(format_inheritance(failure), markup=False, highlight=False, soft_wrap=True)


def display_warnings(report: AuditReport, console: Console) -> None:
    for warning in report.warnings:
        console.print(f"[yellow]warning:[/yellow] {warning}")


def display_summary(report: AuditReport, console: Console) -> None:
    """Display summary panel."""
    results = report.results
    lines = [
        f"[bold]Types discovered:[/bold] {results.types_discovered}",
        f"[bold]Comparisons:[/bold] {results.comparisons}",
        f"[bold]Ignored:[/bold] {results.ignored}",
        f"[bold]Undocumented:[/bold] {len(results.undocumented)}",
        "",
        f"  [red]Mismatches:[/red] {len(results.mismatches)}",
        f"  [yellow]Inheritance violations:[/yellow] {len(results.inheritance_failures)}",
        f"  [red]Unresolvable references:[/red] {len(results.resolution_failures)}",
        "",
        f"[bold]Taxonomies:[/bold] {', '.join(results.taxonomies) or 'none'}",
    ]
    console.print(Panel(
        "\n".join(lines),
        title="PASSED" if report.passed else "FAILED",
        border_style="green" if report.passed else "red",
    ))


def build_hierarchy_tree(index: TypeHierarchyIndex, title: str) -> Tree:
    """Render the supertype -> subtype graph as a tree.

    Types with several in-universe supertypes appear under each of them.
    """
    tree = Tree(f"[bold]{title}[/bold]")

    def add(node: Tree, event_type: EventType) -> None:
        label = event_type.name
        if not event_type.is_documented:
            label += " [dim](undocumented)[/dim]"
        child = node.add(label)
        for subtype in index.direct_subtypes_of(event_type):
            add(child, subtype)

    for root in index.roots():
        add(tree, root)
    return tree


def build_explain_table(
    event_type: EventType,
    rows: list[tuple[str, Optional[frozenset[str]], frozenset[str], frozenset[str], bool, Optional[str]]],
) -> Table:
    """Table of documented/exception/derived members for one type.

    Each row is (taxonomy, documented, excused, derived, ignored, unresolved),
    where unresolved is the raw reference that could not be resolved, if any.
    """
    table = Table(title=event_type.name, show_lines=True)
    table.add_column("Taxonomy", style="cyan")
    table.add_column("Documented")
    table.add_column("Excused", style="dim")
    table.add_column("Derived")
    table.add_column("Status")
    for taxonomy, documented, excused, derived, ignored, unresolved in rows:
        if unresolved is not None:
            status = f"[red]unresolvable {escape(unresolved)}[/red]"
        elif documented is None:
            status = "[dim]undocumented[/dim]"
        elif ignored:
            status = "[dim]ignored[/dim]"
        elif documented - excused == derived:
            status = "[green]ok[/green]"
        else:
            status = "[red]mismatch[/red]"
        table.add_row(
            taxonomy,
            _members_cell(documented),
            _members_cell(excused),
            _members_cell(derived),
            status,
        )
    return table

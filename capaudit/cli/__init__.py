"""CLI package for capaudit.

Modules:
    app.py      - Main Typer app, version callback, command registration
    commands.py - Audit commands (run, types, explain)
    display.py  - Rich formatting utilities (tables, trees, summaries)
    common.py   - Shared helpers (get_console, get_project_dir, load_config_or_exit)

Usage:
    from capaudit.cli import app, cli_main  # Main exports
"""
from capaudit.cli.app import app, cli_main

__all__ = ["app", "cli_main"]

"""Common utilities and global state for the CLI.

Contains project directory management and config loading.
This module should NOT import from the command modules to avoid circular imports.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from capaudit.config import DEFAULT_CONFIG_FILE, AuditConfig, ConfigError, load_config

# ============================================================================
# Global State
# ============================================================================

# Global project directory override (set via --project flag)
_project_dir: Optional[str] = None

# Console singleton
_console: Optional[Console] = None


def get_project_dir() -> Optional[str]:
    """Get the project directory override if set."""
    return _project_dir


def set_project_dir(path: Optional[str]) -> None:
    """Set the project directory override."""
    global _project_dir
    _project_dir = path


def get_console() -> Console:
    """Get or create the console singleton."""
    global _console
    if _console is None:
        _console = Console()
    return _console


# ============================================================================
# Config Helpers
# ============================================================================


def resolve_config_path(config_path: Optional[str]) -> str:
    """Config path relative to the --project directory when one is set."""
    path = Path(config_path or DEFAULT_CONFIG_FILE)
    project_dir = get_project_dir()
    if project_dir and not path.is_absolute():
        path = Path(project_dir) / path
    return str(path)


def load_config_or_exit(config_path: Optional[str]) -> AuditConfig:
    """Load config, printing the problem and exiting 1 if it is unusable."""
    path = resolve_config_path(config_path)
    try:
        return load_config(path)
    except ConfigError as e:
        get_console().print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(1)


"""
Shared utilities for Camscan CLI commands.

This module provides common functionality used across multiple CLI commands:
- Logging setup
- Output formatting helpers
"""

import json
import logging
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import DEFAULT_LOG_LEVEL, get_log_level

console = Console()
err_console = Console(stderr=True)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def setup_logging(level: str) -> None:
    """Send log records to stderr through rich at ``level``."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def print_error(message: str, hint: str = None):
    """Print an error message with optional hint."""
    err_console.print(f"[red]✗[/red] {message}")
    if hint:
        err_console.print(f"[dim]{hint}[/dim]")


def print_success(message: str):
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def create_table(title: str, columns: list[tuple[str, str]]) -> Table:
    """
    Create a Rich table with common styling.

    Args:
        title: Table title
        columns: List of (name, style) tuples

    Returns:
        Configured Rich Table
    """
    table = Table(title=title)
    for name, style in columns:
        table.add_column(name, style=style)
    return table


def format_json(data: Any) -> str:
    """Format data as pretty JSON."""
    return json.dumps(data, indent=2, default=str)


def log_level_option(func):
    """Add the shared ``--log-level`` option to a command."""
    return click.option(
        "--log-level",
        type=click.Choice(LOG_LEVELS, case_sensitive=False),
        default=get_log_level,
        show_default=DEFAULT_LOG_LEVEL,
        help="Minimum level of log messages written to stderr",
    )(func)

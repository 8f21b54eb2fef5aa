"""Centralized terminal output for fetchhar.

Key principle: stderr for status/progress, stdout for data. The HAR itself
is data; summaries of what was recorded are status.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from rich.console import Console
from rich.table import Table

# stderr console for status messages (summaries, success/error)
err_console = Console(stderr=True)


def success(message: str, *, console: Console | None = None) -> None:
    """Print a success message (green checkmark) to stderr."""
    c = console or err_console
    c.print(f"[green]  ✓ {message}[/green]")


def error(message: str, *, console: Console | None = None) -> None:
    """Print an error message (red X) to stderr."""
    c = console or err_console
    c.print(f"[red]  ✗ {message}[/red]")


def warn(message: str, *, console: Console | None = None) -> None:
    """Print a warning message (yellow) to stderr."""
    c = console or err_console
    c.print(f"[yellow]  ⚠ {message}[/yellow]")


def status_style(status: int) -> str:
    """Rich style for an HTTP status; 0 means no response was received."""
    if status == 0 or status >= 400:
        return "red"
    if status >= 300:
        return "yellow"
    return "green"


def format_size(size: int) -> str:
    """Human-readable byte count; -1 (unknown) renders as a dash."""
    if size < 0:
        return "-"
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KiB"
    return f"{size / (1024 * 1024):.1f} MiB"


def entries_table(entries: Iterable[dict[str, Any]], *, title: str = "Captured Requests") -> Table:
    """Build a summary table of HAR entries, one row per recorded request.

    Redirect hops appear as their own rows. Size is the decoded content size.
    """
    table = Table(
        title=title,
        title_style="bold",
        header_style="bold cyan",
        border_style="dim",
    )
    table.add_column("Method", style="cyan")
    table.add_column("URL", style="white", overflow="fold")
    table.add_column("Status", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Time (ms)", justify="right")

    for entry in entries:
        status = entry["response"]["status"]
        style = status_style(status)
        table.add_row(
            entry["request"]["method"],
            entry["request"]["url"],
            f"[{style}]{status}[/{style}]",
            format_size(entry["response"]["content"]["size"]),
            f"{entry['time']:.1f}",
        )
    return table


def print_entries(entries: list[dict[str, Any]], *, console: Console | None = None) -> None:
    """Print the summary table of recorded entries, or a warning if there are none."""
    c = console or err_console
    if not entries:
        warn("No requests were recorded", console=c)
        return
    c.print(entries_table(entries))

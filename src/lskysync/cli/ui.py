"""Status output helpers for the lskysync CLI.

Usage:
    from lskysync.cli import ui

    ui.title("Uploading images")
    ui.success("Uploaded diagram.png")
    ui.error("Upload failed", detail="HTTP 500")
"""

from __future__ import annotations

from collections.abc import Mapping

from rich.console import Console
from rich.markup import escape

from lskysync.cli.console import get_console

MARK_SUCCESS = "✓"
MARK_ERROR = "✗"
MARK_WARNING = "!"
MARK_INFO = "•"
MARK_TITLE = "◆"
MARK_LINE = "│"


def title(text: str, *, console: Console | None = None) -> None:
    """Display a title with diamond symbol."""
    c = console or get_console()
    c.print(f"[cyan]{MARK_TITLE}[/] [bold]{escape(text)}[/]")
    c.print()


def success(text: str, *, console: Console | None = None) -> None:
    """Display a success message with checkmark."""
    c = console or get_console()
    c.print(f"  [green]{MARK_SUCCESS}[/] {escape(text)}")


def error(
    text: str, *, detail: str | None = None, console: Console | None = None
) -> None:
    """Display an error message, with optional detail on its own line."""
    c = console or get_console()
    c.print(f"  [red]{MARK_ERROR}[/] {escape(text)}")
    if detail:
        c.print(f"    [dim]{MARK_LINE} {escape(detail)}[/]")


def warning(
    text: str, *, detail: str | None = None, console: Console | None = None
) -> None:
    """Display a warning message, with optional detail on its own line."""
    c = console or get_console()
    c.print(f"  [yellow]{MARK_WARNING}[/] {escape(text)}")
    if detail:
        c.print(f"    [dim]{MARK_LINE} {escape(detail)}[/]")


def info(text: str, *, console: Console | None = None) -> None:
    c = console or get_console()
    c.print(f"  [dim]{MARK_INFO}[/] {escape(text)}")


def failures(items: Mapping[str, str], *, console: Console | None = None) -> None:
    """Display one error line per failed item."""
    for item, reason in items.items():
        error(item, detail=reason, console=console)


def summary(text: str, *, console: Console | None = None) -> None:
    """Display the one-line outcome of a command, after a blank line."""
    c = console or get_console()
    c.print()
    c.print(f"[green]{MARK_SUCCESS}[/] {escape(text)}")

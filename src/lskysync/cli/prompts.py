"""Interactive confirmation for destructive commands."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console
from rich.markup import escape

from lskysync.cli import ui
from lskysync.cli.console import get_stderr_console
from lskysync.workflow.cleanup import CleanupSummary, Confirmer


def render_cleanup_summary(
    summary: CleanupSummary, console: Console | None = None
) -> None:
    """Show the host total, orphan count and the first orphan URLs."""
    c = console or get_stderr_console()
    ui.title("Unused images", console=c)
    c.print(f"  Images on host: [bold]{summary.total}[/]")
    c.print(f"  Not referenced by any note: [bold yellow]{len(summary.orphans)}[/]")
    c.print()
    for url in summary.sample:
        c.print(f"    [dim]{ui.MARK_LINE}[/] {escape(url)}")
    if summary.remaining:
        c.print(f"    [dim]... {summary.remaining} more[/]")
    c.print()


def make_cleanup_confirmer(
    assume_yes: bool = False, console: Console | None = None
) -> Confirmer:
    """Build the confirmation callback for ``cleanup_unused_images``.

    The summary is always shown; with ``assume_yes`` the prompt is skipped.
    """

    async def confirm(summary: CleanupSummary) -> bool:
        render_cleanup_summary(summary, console)
        if assume_yes:
            return True
        prompt = f"Delete {len(summary.orphans)} unused images from the host?"
        return await asyncio.to_thread(click.confirm, prompt, default=False)

    return confirm

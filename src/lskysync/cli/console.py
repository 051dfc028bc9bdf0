"""Rich consoles shared by every CLI command.

Command results go to stdout; progress bars, prompts and the cleanup
summary go to stderr so piped output (``lskysync used | sort``) stays clean.
"""

from __future__ import annotations

from functools import cache

from rich.console import Console


@cache
def get_console() -> Console:
    return Console()


@cache
def get_stderr_console() -> Console:
    return Console(stderr=True)


def reset_consoles() -> None:
    """Drop the cached consoles so the next call binds to the current streams."""
    get_console.cache_clear()
    get_stderr_console.cache_clear()

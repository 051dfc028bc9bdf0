"""Progress reporting utilities.

Workflows report progress through the small ProgressReporter protocol and
never read anything back from it. NullProgress discards updates;
RichProgress draws a bar on stderr for CLI runs.
"""

from __future__ import annotations

from typing import Any, Protocol

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TaskID,
    TextColumn,
)

# Separate stderr console for progress (doesn't mix with stdout output)
stderr_console = Console(stderr=True)


class ProgressReporter(Protocol):
    """Fire-and-forget progress sink used by batch workflows."""

    def set_total(self, total: int) -> None: ...

    def set_progress(
        self, current: int, total: int | None = None, message: str | None = None
    ) -> None: ...

    def increment(self, message: str | None = None) -> None: ...


class NullProgress:
    """Progress reporter that tracks counts but shows nothing."""

    def __init__(self) -> None:
        self.current = 0
        self.total = 0
        self.message: str | None = None

    def set_total(self, total: int) -> None:
        self.total = max(0, total)

    def set_progress(
        self, current: int, total: int | None = None, message: str | None = None
    ) -> None:
        self.current = max(0, current)
        if total is not None:
            self.total = max(0, total)
        self.message = message

    def increment(self, message: str | None = None) -> None:
        self.set_progress(self.current + 1, message=message)


class RichProgress(NullProgress):
    """Progress bar on stderr for one batch operation.

    The bar appears on the first update, so prompts shown before any
    progress is reported are not drawn over.

    Usage:
        with RichProgress("Uploading images") as progress:
            progress.set_total(3)
            progress.increment("a.png")
    """

    def __init__(self, title: str, console: Console | None = None) -> None:
        super().__init__()
        self.title = title
        self._progress = Progress(
            TextColumn("[cyan]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("[dim]{task.fields[message]}"),
            console=console or stderr_console,
            transient=True,
        )
        self._task_id: TaskID | None = None
        self._active = False

    def __enter__(self) -> RichProgress:
        self._active = True
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self._active = False
        if self._task_id is not None:
            self._progress.stop()

    def _render(self) -> None:
        if not self._active:
            return
        if self._task_id is None:
            self._progress.start()
            self._task_id = self._progress.add_task(self.title, total=0, message="")
        self._progress.update(
            self._task_id,
            completed=min(self.current, self.total) if self.total else self.current,
            total=self.total,
            message=self.message or "",
        )

    def set_total(self, total: int) -> None:
        super().set_total(total)
        self._render()

    def set_progress(
        self, current: int, total: int | None = None, message: str | None = None
    ) -> None:
        super().set_progress(current, total, message)
        self._render()

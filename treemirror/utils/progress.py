"""
Progress Reporting

Progress sinks used by the scanner and synchronizer. The core only calls
begin/advance/end; rendering lives here.

Author: treemirror Project
License: MIT
"""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    Progress,
    SpinnerColumn,
    BarColumn,
    TextColumn,
    TimeElapsedColumn,
)


class ProgressSink:
    """
    No-op progress sink.

    Also serves as the interface: subclasses override begin, advance and end.
    """

    def begin(self, name: str, total: Optional[int] = None) -> None:
        """Start a task, optionally with a known total."""

    def advance(self, n: int = 1) -> None:
        """Record n units of completed work on the current task."""

    def end(self) -> None:
        """Finish the current task."""


class RichProgress(ProgressSink):
    """Progress sink that renders a rich progress bar per task."""

    def __init__(self, console: Optional[Console] = None, transient: bool = False):
        self.console = console or Console(stderr=True)
        self.transient = transient
        self._progress: Optional[Progress] = None
        self._task_id = None

    def begin(self, name: str, total: Optional[int] = None) -> None:
        if self._progress is not None:
            self.end()

        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("({task.completed}/{task.total})"),
            TimeElapsedColumn(),
            console=self.console,
            transient=self.transient,
        )
        self._progress.start()
        self._task_id = self._progress.add_task(f"[cyan]{escape(name)}", total=total)

    def advance(self, n: int = 1) -> None:
        if self._progress is not None:
            self._progress.advance(self._task_id, n)

    def end(self) -> None:
        if self._progress is None:
            return
        self._progress.stop()
        self._progress = None
        self._task_id = None

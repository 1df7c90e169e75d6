"""Progress and status reporting for update runs and auto-save."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.syntax import Syntax
from rich.table import Table

from plancraft.autosave import SaveState
from plancraft.models.results import UpdateFailure

if TYPE_CHECKING:
    from rich.progress import TaskID

    from plancraft.autosave import SaveStatus
    from plancraft.models.results import PendingChange


@dataclass(frozen=True, slots=True)
class PipelineEvent:
    """Immutable event emitted by each update stage.

    Attributes:
        state: Stage name (e.g. "GENERATING", "MERGING").
        step_index: Zero-based index of the stage.
        total_steps: Number of stages in the run.
        detail: Human-readable detail string for verbose output.
    """

    state: str
    step_index: int
    total_steps: int
    detail: str


def format_save_status(status: SaveStatus) -> str:
    """Render a save status as the short text shown next to the editor."""
    if status.state is SaveState.FAILING:
        return f"Retrying ({status.retry_count}/{status.max_retries})"
    if status.state is SaveState.SAVING:
        return "Saving..."
    if status.state is SaveState.ERROR:
        return "Save failed"
    if status.state is SaveState.SCHEDULED:
        return "Unsaved changes"
    if status.last_saved is not None:
        return f"Saved at {status.last_saved.astimezone().strftime('%H:%M:%S')}"
    return ""


class ProgressReporter:
    """Rich-based progress display for update runs.

    Shows a spinner on TTY stderr. Falls back to structured log messages
    when stderr is not a terminal.
    """

    def __init__(
        self,
        console: Console,
        verbose: bool = False,
        quiet: bool = False,
    ) -> None:
        self._console = console
        self._verbose = verbose
        self._quiet = quiet
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self._is_tty: bool = sys.stderr.isatty()
        self._logger: logging.Logger = logging.getLogger("plancraft.progress")

    def callback(self, event: PipelineEvent) -> None:
        """Handle an update event -- refresh the spinner or log it."""
        if self._quiet:
            return

        if self._progress is not None and self._task_id is not None:
            self._progress.update(
                self._task_id,
                description=f"[cyan]{event.state}",
                completed=event.step_index + 1,
                total=event.total_steps,
            )
            if self._verbose and event.detail:
                self._console.print(f"  [dim]{event.detail}[/dim]")
            return

        self._logger.info(
            "%s [%d/%d] %s",
            event.state,
            event.step_index + 1,
            event.total_steps,
            event.detail,
        )

    def start(self, request: str) -> None:
        """Start the progress display."""
        if self._quiet:
            return

        if self._is_tty:
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                TimeElapsedColumn(),
                console=self._console,
                transient=True,
            )
            self._progress.start()
            self._task_id = self._progress.add_task("[cyan]STARTING", total=None)
        else:
            self._logger.info("Update started -- %s", request)

    def stop(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
            self._task_id = None

    def finish(self, outcome: PendingChange | UpdateFailure) -> None:
        """Stop progress and print a summary of the run."""
        self.stop()
        if self._quiet:
            return

        table = Table(title="Update Summary", show_header=True)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")

        if isinstance(outcome, UpdateFailure):
            table.add_row("Outcome", "[red]failed[/red]")
            table.add_row("Reason", outcome.reason)
        else:
            lines = outcome.diff().splitlines()
            added = sum(1 for line in lines if line[:1] == "+" and line[:3] != "+++")
            removed = sum(1 for line in lines if line[:1] == "-" and line[:3] != "---")
            table.add_row("Outcome", "changed" if outcome.has_changes else "no changes")
            table.add_row("Description", outcome.description)
            table.add_row("Lines added", str(added))
            table.add_row("Lines removed", str(removed))

        self._console.print(table)

    def show_diff(self, change: PendingChange) -> None:
        """Print the unified diff of a pending change."""
        diff = change.diff()
        if not diff:
            self._console.print("[dim]No changes.[/dim]")
            return
        self._console.print(Syntax(diff, "diff", theme="ansi_dark", word_wrap=True))

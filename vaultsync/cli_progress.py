"""CLI progress display for sync operations.

This module provides Rich-based progress displays that work with
the SyncProgressTracker from the sync engine.
"""

from typing import Optional

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from .sync.progress import SyncProgressEvent, SyncProgressInfo, SyncProgressTracker

_ACTION_LABELS = {
    "upload": "Uploaded",
    "download": "Downloaded",
    "delete_local": "Deleted",
    "replace_remote": "Replaced",
    "replace_local": "Replaced",
    "conflict": "Resolved",
}


class SyncProgressDisplay:
    """Rich-based progress display for sync operations.

    This class creates a Rich Progress instance and handles
    SyncProgressInfo events to update the display.
    """

    def __init__(self) -> None:
        """Initialize the progress display."""
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def create_tracker(self) -> SyncProgressTracker:
        """Create a SyncProgressTracker that updates this display.

        Returns:
            A configured SyncProgressTracker
        """
        return SyncProgressTracker(callback=self._handle_event)

    def _handle_event(self, info: SyncProgressInfo) -> None:
        """Handle a progress event from the tracker.

        Args:
            info: Progress information
        """
        if self._progress is None or self._task is None:
            return

        if info.event == SyncProgressEvent.SYNC_START:
            self._progress.update(
                self._task, description=f"{info.operation}: checking changes..."
            )

        elif info.event == SyncProgressEvent.PLAN_READY:
            self._progress.update(
                self._task,
                description=info.operation,
                total=info.files_total,
                completed=0,
                current="",
            )

        elif info.event == SyncProgressEvent.FILE_COMPLETE:
            label = _ACTION_LABELS.get(info.action, "Done")
            self._progress.update(
                self._task,
                completed=info.files_done,
                current=f"{label}: {info.path}",
            )

        elif info.event == SyncProgressEvent.FILE_FAILED:
            self._progress.console.print(f"[red]Failed:[/red] {info.path}: {info.error}")

        elif info.event == SyncProgressEvent.BACKUP_CREATED:
            self._progress.update(self._task, current=f"Backed up: {info.path}")

        elif info.event == SyncProgressEvent.SNAPSHOT_COMMITTED:
            self._progress.update(self._task, current="Saving snapshot")

    def __enter__(self) -> "SyncProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("[cyan]{task.fields[current]}"),
            TimeElapsedColumn(),
            refresh_per_second=4,
        )
        self._progress.__enter__()
        self._task = self._progress.add_task("Preparing...", total=None, current="")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            if self._task is not None:
                self._progress.update(self._task, current="")
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None

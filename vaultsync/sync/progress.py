"""Structured progress events for sync operations.

The engine reports what it is doing through :class:`SyncProgressTracker`;
turning the events into text or progress bars is left to the caller
(see ``vaultsync.cli_progress``).
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional


class SyncProgressEvent(str, Enum):
    """Kinds of progress events."""

    SYNC_START = "sync_start"
    """An operation started"""

    PLAN_READY = "plan_ready"
    """The transfer plan is known; ``files_total`` is set"""

    FILE_COMPLETE = "file_complete"
    """A single transfer or delete finished"""

    FILE_FAILED = "file_failed"
    """A single transfer or delete failed"""

    BACKUP_CREATED = "backup_created"
    """A conflict backup was written"""

    SNAPSHOT_COMMITTED = "snapshot_committed"
    """Updated snapshots were written"""

    SYNC_COMPLETE = "sync_complete"
    """The operation finished"""


@dataclass
class SyncProgressInfo:
    """Information passed to the progress callback."""

    event: SyncProgressEvent
    """Event type"""

    operation: str = ""
    """Operation name (push, pull, push_all, pull_all)"""

    path: str = ""
    """Relative path the event is about (if any)"""

    action: str = ""
    """Sync action applied to ``path`` (if any)"""

    files_done: int = 0
    """Files processed so far"""

    files_total: int = 0
    """Files in the transfer plan"""

    error: Optional[str] = None
    """Error message for FILE_FAILED"""


class SyncProgressTracker:
    """Counts completed work and forwards events to a callback.

    Safe to call from transfer worker threads.
    """

    def __init__(self, callback: Optional[Callable[[SyncProgressInfo], None]] = None):
        """Initialize the tracker.

        Args:
            callback: Function receiving every SyncProgressInfo
        """
        self.callback = callback
        self.operation = ""
        self.files_done = 0
        self.files_total = 0
        self._lock = threading.Lock()

    def _emit(self, event: SyncProgressEvent, **kwargs: object) -> None:
        if self.callback is None:
            return
        info = SyncProgressInfo(
            event=event,
            operation=self.operation,
            files_done=self.files_done,
            files_total=self.files_total,
            **kwargs,  # type: ignore[arg-type]
        )
        self.callback(info)

    def on_sync_start(self, operation: str) -> None:
        with self._lock:
            self.operation = operation
            self.files_done = 0
            self.files_total = 0
            self._emit(SyncProgressEvent.SYNC_START)

    def on_plan_ready(self, files_total: int) -> None:
        with self._lock:
            self.files_total = files_total
            self._emit(SyncProgressEvent.PLAN_READY)

    def on_file_complete(self, path: str, action: str) -> None:
        with self._lock:
            self.files_done += 1
            self._emit(SyncProgressEvent.FILE_COMPLETE, path=path, action=action)

    def on_file_failed(self, path: str, action: str, error: str) -> None:
        with self._lock:
            self._emit(
                SyncProgressEvent.FILE_FAILED, path=path, action=action, error=error
            )

    def on_backup_created(self, path: str) -> None:
        with self._lock:
            self._emit(SyncProgressEvent.BACKUP_CREATED, path=path)

    def on_snapshot_committed(self) -> None:
        with self._lock:
            self._emit(SyncProgressEvent.SNAPSHOT_COMMITTED)

    def on_sync_complete(self) -> None:
        with self._lock:
            self._emit(SyncProgressEvent.SYNC_COMPLETE)

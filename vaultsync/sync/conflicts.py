"""Conflict surfacing and resolution.

A conflict is a path where both the live local file and the remote side
diverged from the last common snapshot. Every resolution keeps the losing
version as a timestamped backup inside the conflict folder before anything
is overwritten or deleted.
"""

import logging
import posixpath
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

from ..exceptions import BackupError, SyncError
from ..utils import generate_conflict_filename
from .protocols import FileTree

logger = logging.getLogger(__name__)


class ConflictResolution(str, Enum):
    """Which side wins a conflict."""

    LOCAL = "local"
    """Keep the live local file; the remote version is backed up"""

    REMOTE = "remote"
    """Take the remote version; the live local file is backed up"""


@dataclass(frozen=True)
class ConflictInfo:
    """A path that changed on both sides since the last sync."""

    path: str
    """Relative path of the file"""

    local_modified_time: str
    """ISO modification time of the live local file"""

    remote_modified_time: str
    """ISO modification time recorded in the remote snapshot"""

    local_hash: str
    """Hash of the live local file"""

    remote_hash: str
    """Hash recorded in the remote snapshot ("" if deleted remotely)"""

    remote_deleted: bool = False
    """The file was deleted remotely while edited locally"""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "path": self.path,
            "localModifiedTime": self.local_modified_time,
            "remoteModifiedTime": self.remote_modified_time,
            "localHash": self.local_hash,
            "remoteHash": self.remote_hash,
        }
        if self.remote_deleted:
            data["remoteDeleted"] = True
        return data


ConflictCallback = Callable[
    [list[ConflictInfo]], Optional[dict[str, ConflictResolution]]
]
"""Asked once per sync with every conflict; returns None to cancel."""


def validate_resolutions(
    conflicts: list[ConflictInfo],
    resolutions: dict[str, Any],
) -> dict[str, ConflictResolution]:
    """Check that every conflict got exactly one valid resolution.

    Args:
        conflicts: Conflicts that were surfaced
        resolutions: Mapping returned by the conflict callback

    Returns:
        Resolutions normalized to :class:`ConflictResolution`

    Raises:
        SyncError: If a conflict is unresolved or a value is invalid
    """
    normalized: dict[str, ConflictResolution] = {}
    for conflict in conflicts:
        if conflict.path not in resolutions:
            raise SyncError(f"No resolution given for conflict: {conflict.path}")
        value = resolutions[conflict.path]
        try:
            normalized[conflict.path] = ConflictResolution(value)
        except ValueError as e:
            raise SyncError(
                f"Invalid resolution {value!r} for conflict: {conflict.path}"
            ) from e
    unknown = set(resolutions) - set(normalized)
    if unknown:
        logger.debug(f"Ignoring resolutions for non-conflicting paths: {sorted(unknown)}")
    return normalized


class ConflictResolver:
    """Writes conflict backups into the conflict folder.

    Backup names follow ``{folder}/{basename}_{YYYYMMDD_HHMMSS}{.ext}``; when
    that name is already taken (two files with the same basename backed up
    within the same second) a ``_1``, ``_2``... suffix is added.
    """

    def __init__(self, tree: FileTree, conflict_folder: str):
        """Initialize conflict resolver.

        Args:
            tree: Local file tree receiving the backups
            conflict_folder: Folder (relative to the vault root) for backups
        """
        self.tree = tree
        self.conflict_folder = conflict_folder
        self._lock = threading.Lock()
        self._reserved: set[str] = set()

    def _unique_backup_path(self, path: str, now: Optional[datetime]) -> str:
        candidate = generate_conflict_filename(path, self.conflict_folder, now)
        stem, ext = posixpath.splitext(candidate)
        counter = 1
        while candidate in self._reserved or self.tree.exists(candidate):
            candidate = f"{stem}_{counter}{ext}"
            counter += 1
        self._reserved.add(candidate)
        return candidate

    def backup(self, path: str, data: bytes, now: Optional[datetime] = None) -> str:
        """Store ``data`` as the backup of ``path``.

        Args:
            path: Relative path of the conflicting file
            data: Content of the version being discarded
            now: Timestamp for the backup name (defaults to now)

        Returns:
            Relative path of the written backup

        Raises:
            BackupError: If the backup could not be written
        """
        try:
            with self._lock:
                backup_path = self._unique_backup_path(path, now)
            self.tree.mkdir(posixpath.dirname(backup_path))
            self.tree.write(backup_path, data)
        except OSError as e:
            raise BackupError(f"Failed to back up {path}: {e}", path=path) from e
        logger.info(f"Backed up {path} to {backup_path}")
        return backup_path

"""Snapshot management for tracking sync history.

A snapshot (:class:`SyncMeta`) records, for every tracked path, the content
hash and modification time the vault had after the last successful sync.
One copy lives inside the vault (``.obsidian/gdrive-vault-meta.json``) and
one in the remote vault folder (``_gdrive-vault-meta.json``). Comparing the
two against the live tree is what makes three-way reconciliation possible.
"""

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from ..exceptions import DriveAPIError
from ..models import RemoteObject
from ..utils import now_iso, timestamp_to_iso
from .hashing import calculate_hash
from .ignore import META_FILE_NAME_LOCAL, META_FILE_NAME_REMOTE, META_FILE_NAMES, PathFilter
from .protocols import FileTree, RemoteStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileMetadata:
    """Recorded state of a single tracked file."""

    hash: str
    """SHA-256 of the content, lowercase hex"""

    modified_time: str
    """ISO-8601 modification time (advisory only)"""

    def to_dict(self) -> dict[str, str]:
        """Convert to the JSON wire format."""
        return {"hash": self.hash, "modifiedTime": self.modified_time}

    @classmethod
    def from_dict(cls, data: Any) -> "FileMetadata":
        """Create FileMetadata from its JSON wire format.

        Raises:
            ValueError: If the entry is malformed
        """
        if not isinstance(data, dict) or not isinstance(data.get("hash"), str):
            raise ValueError(f"Invalid file metadata entry: {data!r}")
        return cls(hash=data["hash"], modified_time=str(data.get("modifiedTime", "")))


@dataclass(frozen=True)
class SyncMeta:
    """A snapshot of the vault as of the last successful sync.

    Instances are treated as values: the ``with_*``/``without_*`` helpers
    return new snapshots and never modify ``files`` in place.
    """

    last_updated_at: str
    """Bumped only when a sync transferred or deleted something"""

    last_sync_timestamp: str
    """Bumped only when a reconciliation commits. A run that writes no
    snapshot leaves it unchanged"""

    files: dict[str, FileMetadata] = field(default_factory=dict)
    """Tracked paths mapped to their recorded metadata"""

    def get(self, path: str) -> Optional[FileMetadata]:
        return self.files.get(path)

    def hash_of(self, path: str) -> Optional[str]:
        """Recorded hash of a path, or None if the path is not tracked."""
        metadata = self.files.get(path)
        return metadata.hash if metadata else None

    def __contains__(self, path: object) -> bool:
        return path in self.files

    def with_files(self, files: dict[str, FileMetadata]) -> "SyncMeta":
        """Return a copy tracking exactly ``files``."""
        return replace(self, files=dict(files))

    def with_file(self, path: str, metadata: FileMetadata) -> "SyncMeta":
        files = dict(self.files)
        files[path] = metadata
        return replace(self, files=files)

    def without_file(self, path: str) -> "SyncMeta":
        files = dict(self.files)
        files.pop(path, None)
        return replace(self, files=files)

    def stamped(self, timestamp: Optional[str] = None, updated: bool = True) -> "SyncMeta":
        """Return a copy with the sync timestamps set.

        Args:
            timestamp: ISO timestamp to use (defaults to now)
            updated: Also bump ``last_updated_at``
        """
        timestamp = timestamp or now_iso()
        return replace(
            self,
            last_sync_timestamp=timestamp,
            last_updated_at=timestamp if updated else self.last_updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON wire format (camelCase keys)."""
        return {
            "lastUpdatedAt": self.last_updated_at,
            "lastSyncTimestamp": self.last_sync_timestamp,
            "files": {path: md.to_dict() for path, md in sorted(self.files.items())},
        }

    @classmethod
    def from_dict(cls, data: Any) -> "SyncMeta":
        """Create a SyncMeta from its JSON wire format.

        Entries for the meta documents themselves are dropped.

        Raises:
            ValueError: If the document is malformed
        """
        if not isinstance(data, dict):
            raise ValueError("Snapshot document must be a JSON object")
        raw_files = data.get("files", {})
        if not isinstance(raw_files, dict):
            raise ValueError("Snapshot 'files' must be a JSON object")
        files = {
            path: FileMetadata.from_dict(entry)
            for path, entry in raw_files.items()
            if path not in META_FILE_NAMES
        }
        return cls(
            last_updated_at=str(data.get("lastUpdatedAt", "")),
            last_sync_timestamp=str(data.get("lastSyncTimestamp", "")),
            files=files,
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, content: str) -> "SyncMeta":
        return cls.from_dict(json.loads(content))


def create_empty_meta(timestamp: Optional[str] = None) -> SyncMeta:
    """Create an empty snapshot stamped with ``timestamp`` (default: now)."""
    timestamp = timestamp or now_iso()
    return SyncMeta(last_updated_at=timestamp, last_sync_timestamp=timestamp)


def build_file_metadata(tree: FileTree, path: str) -> Optional[FileMetadata]:
    """Hash a live file and record its modification time.

    Returns:
        FileMetadata, or None if the file could not be read
    """
    try:
        data = tree.read(path)
        mtime = tree.modified_time(path)
    except OSError as e:
        logger.warning(f"Failed to build metadata for {path}: {e}")
        return None
    return FileMetadata(hash=calculate_hash(data), modified_time=timestamp_to_iso(mtime))


def build_meta_from_tree(
    tree: FileTree, path_filter: PathFilter, timestamp: Optional[str] = None
) -> SyncMeta:
    """Build a snapshot of the live tree.

    Excluded paths and the meta documents are skipped; unreadable files are
    left out with a warning.

    Args:
        tree: Local file tree
        path_filter: Filter deciding which paths are tracked
        timestamp: Value for both snapshot timestamps (defaults to now)

    Returns:
        Snapshot of every included live file
    """
    files: dict[str, FileMetadata] = {}
    for path in tree.list_files():
        if path_filter.is_excluded(path):
            continue
        metadata = build_file_metadata(tree, path)
        if metadata:
            files[path] = metadata
    logger.debug(f"Built live snapshot with {len(files)} files")
    return create_empty_meta(timestamp).with_files(files)


def find_remote_meta(listing: list[RemoteObject]) -> Optional[RemoteObject]:
    """Find the remote meta document in a vault folder listing."""
    for obj in listing:
        if obj.name == META_FILE_NAME_REMOTE:
            return obj
    return None


class SnapshotStore:
    """Reads and writes the local and remote snapshot documents.

    Reads never raise: a missing, unreadable or corrupt snapshot is reported
    as ``None`` (corruption is logged) and treated as absent by callers.
    """

    def __init__(self, tree: FileTree, remote: RemoteStore, vault_id: str):
        """Initialize snapshot store.

        Args:
            tree: Local file tree holding the local snapshot
            remote: Remote store holding the remote snapshot
            vault_id: ID of the remote vault folder
        """
        self.tree = tree
        self.remote = remote
        self.vault_id = vault_id

    def read_local(self) -> Optional[SyncMeta]:
        """Load the local snapshot.

        Returns:
            SyncMeta if found and valid, None otherwise
        """
        try:
            if not self.tree.exists(META_FILE_NAME_LOCAL):
                logger.debug(f"No local snapshot at {META_FILE_NAME_LOCAL}")
                return None
            meta = SyncMeta.from_json(self.tree.read(META_FILE_NAME_LOCAL).decode("utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read local snapshot: {e}")
            return None
        logger.debug(
            f"Loaded local snapshot with {len(meta.files)} files "
            f"from {meta.last_sync_timestamp}"
        )
        return meta

    def write_local(self, meta: SyncMeta) -> None:
        """Write the local snapshot."""
        parent = META_FILE_NAME_LOCAL.rsplit("/", 1)[0]
        self.tree.mkdir(parent)
        self.tree.write(META_FILE_NAME_LOCAL, meta.to_json().encode("utf-8"))
        logger.debug(f"Saved local snapshot with {len(meta.files)} files")

    def read_remote(self, listing: list[RemoteObject]) -> Optional[SyncMeta]:
        """Load the remote snapshot.

        Args:
            listing: Current listing of the vault folder

        Returns:
            SyncMeta if found and valid, None otherwise
        """
        meta_object = find_remote_meta(listing)
        if meta_object is None:
            logger.debug("No remote snapshot in vault folder")
            return None
        try:
            content = self.remote.get_file(meta_object.id)
            meta = SyncMeta.from_json(content.decode("utf-8"))
        except (DriveAPIError, ValueError) as e:
            logger.warning(f"Failed to read remote snapshot: {e}")
            return None
        logger.debug(f"Loaded remote snapshot with {len(meta.files)} files")
        return meta

    def write_remote(self, meta: SyncMeta, listing: list[RemoteObject]) -> str:
        """Write the remote snapshot, updating it in place when it exists.

        Args:
            meta: Snapshot to write
            listing: Current listing of the vault folder

        Returns:
            ID of the remote meta object
        """
        data = meta.to_json().encode("utf-8")
        meta_object = find_remote_meta(listing)
        if meta_object is not None:
            self.remote.update_file(meta_object.id, data)
            file_id = meta_object.id
        else:
            file_id = self.remote.create_file(META_FILE_NAME_REMOTE, data, self.vault_id)
        logger.debug(f"Saved remote snapshot with {len(meta.files)} files")
        return file_id

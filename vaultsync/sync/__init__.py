"""Sync engine for vaultsync - three-way push/pull reconciliation."""

from .comparator import FileComparator, PushGate, SyncAction, SyncDecision, SyncDiff
from .conflicts import (
    ConflictCallback,
    ConflictInfo,
    ConflictResolution,
    ConflictResolver,
    validate_resolutions,
)
from .engine import SyncEngine, SyncResult, SyncStatus
from .hashing import calculate_hash, calculate_hash_from_string
from .ignore import (
    META_FILE_NAME_LOCAL,
    META_FILE_NAME_REMOTE,
    TEMP_PREFIX,
    PathFilter,
    match_glob,
    should_exclude,
)
from .operations import SyncOperations, parallel_process
from .progress import SyncProgressEvent, SyncProgressInfo, SyncProgressTracker
from .protocols import FileTree, RemoteStore
from .scanner import DirectoryScanner, LocalFile, LocalTree
from .state import (
    FileMetadata,
    SnapshotStore,
    SyncMeta,
    build_file_metadata,
    build_meta_from_tree,
    create_empty_meta,
)

__all__ = [
    "SyncEngine",
    "SyncResult",
    "SyncStatus",
    "SyncOperations",
    "parallel_process",
    "DirectoryScanner",
    "LocalFile",
    "LocalTree",
    "FileTree",
    "RemoteStore",
    "FileComparator",
    "PushGate",
    "SyncAction",
    "SyncDecision",
    "SyncDiff",
    "ConflictCallback",
    "ConflictInfo",
    "ConflictResolution",
    "ConflictResolver",
    "validate_resolutions",
    "calculate_hash",
    "calculate_hash_from_string",
    "PathFilter",
    "match_glob",
    "should_exclude",
    "META_FILE_NAME_LOCAL",
    "META_FILE_NAME_REMOTE",
    "TEMP_PREFIX",
    "SyncProgressEvent",
    "SyncProgressInfo",
    "SyncProgressTracker",
    "FileMetadata",
    "SnapshotStore",
    "SyncMeta",
    "build_file_metadata",
    "build_meta_from_tree",
    "create_empty_meta",
]

"""Three-way comparison logic for sync operations.

Every path is classified from three values: the hash in the local snapshot
(what this device last synced), the hash in the remote snapshot (what the
remote last recorded) and the hash of the live local file. Hash equality is
the only "unchanged" test; modification times are informational.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..models import RemoteObject
from ..utils import is_newer
from .conflicts import ConflictInfo
from .ignore import PathFilter
from .state import SyncMeta

logger = logging.getLogger(__name__)


class SyncAction(str, Enum):
    """Actions that can be taken during sync."""

    UPLOAD = "upload"
    """Upload local file to remote (create, or overwrite an existing object)"""

    DOWNLOAD = "download"
    """Download remote file to local"""

    DELETE_LOCAL = "delete_local"
    """Delete local file (deleted remotely)"""

    UNTRACK = "untrack"
    """Drop a locally deleted file from the snapshot; the remote object stays"""

    REPLACE_REMOTE = "replace_remote"
    """Rename the remote object out of the way, then upload a fresh one"""

    REPLACE_LOCAL = "replace_local"
    """Back up the local file, then overwrite it with the remote version"""

    SKIP = "skip"
    """Skip file (no action needed)"""

    CONFLICT = "conflict"
    """File changed on both sides"""


class PushGate(str, Enum):
    """Outcome of the precondition check before an incremental push."""

    PROCEED = "proceed"
    """Snapshots agree well enough to push"""

    FULL_PUSH = "full_push"
    """No remote snapshot yet: upload the whole vault"""

    PULL_REQUIRED = "pull_required"
    """Remote has a snapshot this device never pulled"""

    REMOTE_NEWER = "remote_newer"
    """Remote changed since this device last synced"""


@dataclass
class SyncDecision:
    """Represents a decision about how to sync a file."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    relative_path: str
    """Relative path of the file"""

    remote_object: Optional[RemoteObject] = None
    """Remote object stored under this path (if it exists)"""

    conflict: Optional[ConflictInfo] = None
    """Conflict details when action is CONFLICT"""


@dataclass
class SyncDiff:
    """Paths grouped by what a sync would do with them."""

    to_upload: list[str] = field(default_factory=list)
    to_download: list[str] = field(default_factory=list)
    conflicts: list[ConflictInfo] = field(default_factory=list)
    deleted_locally: list[str] = field(default_factory=list)
    """Tracked paths missing from the live tree"""

    deleted_remotely: list[str] = field(default_factory=list)
    """Tracked paths no longer present on the remote"""

    @property
    def is_empty(self) -> bool:
        return not (
            self.to_upload
            or self.to_download
            or self.conflicts
            or self.deleted_locally
            or self.deleted_remotely
        )

    @classmethod
    def from_decisions(cls, decisions: list[SyncDecision]) -> "SyncDiff":
        """Group a plan into a diff."""
        diff = cls()
        for decision in decisions:
            path = decision.relative_path
            if decision.action in (SyncAction.UPLOAD, SyncAction.REPLACE_REMOTE):
                diff.to_upload.append(path)
            elif decision.action in (SyncAction.DOWNLOAD, SyncAction.REPLACE_LOCAL):
                diff.to_download.append(path)
            elif decision.action == SyncAction.CONFLICT and decision.conflict:
                diff.conflicts.append(decision.conflict)
            elif decision.action == SyncAction.DELETE_LOCAL:
                diff.deleted_remotely.append(path)
            elif decision.action == SyncAction.UNTRACK:
                diff.deleted_locally.append(path)
        return diff

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "toUpload": list(self.to_upload),
            "toDownload": list(self.to_download),
            "conflicts": [c.to_dict() for c in self.conflicts],
            "deletedLocally": list(self.deleted_locally),
            "deletedRemotely": list(self.deleted_remotely),
        }


def _hash(meta: Optional[SyncMeta], path: str) -> Optional[str]:
    return meta.hash_of(path) if meta is not None else None


class FileComparator:
    """Classifies paths into sync actions.

    The comparator is pure: it looks at snapshots and the remote listing and
    never touches the local tree or the network.

    Args (for every ``plan_*`` method):
        live: Snapshot of the live local tree (already filtered)
        local: Local snapshot, or None if this device never synced
        remote: Remote snapshot, or None if nothing was ever pushed
        remote_index: Synchronizable remote objects keyed by name
    """

    def __init__(self, path_filter: Optional[PathFilter] = None):
        """Initialize file comparator.

        Args:
            path_filter: Filter for paths taken from snapshots
        """
        self.path_filter = path_filter or PathFilter()

    # =========================
    # Push
    # =========================

    def check_push_gate(
        self, local: Optional[SyncMeta], remote: Optional[SyncMeta]
    ) -> PushGate:
        """Decide whether an incremental push may run."""
        if remote is None:
            return PushGate.FULL_PUSH
        if local is None:
            return PushGate.PULL_REQUIRED
        if is_newer(remote.last_updated_at, local.last_updated_at):
            return PushGate.REMOTE_NEWER
        return PushGate.PROCEED

    def plan_push(
        self,
        live: SyncMeta,
        local: Optional[SyncMeta],
        remote: Optional[SyncMeta],
        remote_index: dict[str, RemoteObject],
    ) -> list[SyncDecision]:
        """Plan an incremental push.

        Returns:
            One decision per live file, plus an UNTRACK decision for every
            tracked path that no longer exists locally
        """
        decisions: list[SyncDecision] = []

        for path in sorted(live.files):
            live_meta = live.files[path]
            remote_object = remote_index.get(path)
            saved = _hash(remote, path)
            base = _hash(local, path)

            if (
                remote_object is not None
                and saved is not None
                and base is not None
                and live_meta.hash != base
                and saved != base
            ):
                remote_meta = remote.files[path] if remote else None
                decisions.append(
                    SyncDecision(
                        action=SyncAction.CONFLICT,
                        reason="Changed locally and remotely since last sync",
                        relative_path=path,
                        remote_object=remote_object,
                        conflict=ConflictInfo(
                            path=path,
                            local_modified_time=live_meta.modified_time,
                            remote_modified_time=(
                                remote_meta.modified_time if remote_meta else ""
                            ),
                            local_hash=live_meta.hash,
                            remote_hash=saved,
                        ),
                    )
                )
            elif remote_object is None:
                decisions.append(
                    SyncDecision(SyncAction.UPLOAD, "New local file", path)
                )
            elif saved is None:
                decisions.append(
                    SyncDecision(
                        SyncAction.UPLOAD,
                        "Remote object is not tracked, overwriting",
                        path,
                        remote_object,
                    )
                )
            elif saved != live_meta.hash:
                decisions.append(
                    SyncDecision(
                        SyncAction.UPLOAD, "Local file changed", path, remote_object
                    )
                )
            else:
                decisions.append(
                    SyncDecision(SyncAction.SKIP, "Unchanged", path, remote_object)
                )

        tracked = set(local.files if local else ()) | set(remote.files if remote else ())
        for path in sorted(tracked - set(live.files)):
            if self.path_filter.is_excluded(path):
                continue
            decisions.append(
                SyncDecision(
                    SyncAction.UNTRACK,
                    "Deleted locally, remote copy kept as untracked",
                    path,
                    remote_index.get(path),
                )
            )

        return decisions

    # =========================
    # Pull
    # =========================

    def plan_pull(
        self,
        live: SyncMeta,
        local: Optional[SyncMeta],
        remote: SyncMeta,
        remote_index: dict[str, RemoteObject],
    ) -> list[SyncDecision]:
        """Plan an incremental pull.

        Without a local snapshot every remote-tracked path is treated as
        newly added remotely.
        """
        decisions: list[SyncDecision] = []
        paths = set(local.files if local else ()) | set(remote.files)

        for path in sorted(paths):
            if self.path_filter.is_excluded(path):
                continue
            base = _hash(local, path)
            theirs = remote.hash_of(path)

            if base is not None and theirs is not None:
                decision = self._pull_both_tracked(
                    path, base, theirs, live, remote, remote_index
                )
            elif base is not None:
                assert local is not None
                decision = self._pull_remote_deleted(path, base, live, local)
            else:
                assert theirs is not None
                decision = self._pull_remote_added(
                    path, theirs, live, remote, remote_index
                )
            decisions.append(decision)

        return decisions

    def _download(
        self, path: str, reason: str, remote_index: dict[str, RemoteObject]
    ) -> SyncDecision:
        """Build a DOWNLOAD decision, skipping paths with no remote object."""
        remote_object = remote_index.get(path)
        if remote_object is None:
            logger.warning(f"Tracked remotely but no remote object found: {path}")
            return SyncDecision(SyncAction.SKIP, "Remote object missing", path)
        return SyncDecision(SyncAction.DOWNLOAD, reason, path, remote_object)

    def _conflict(
        self,
        path: str,
        live: SyncMeta,
        remote: SyncMeta,
        remote_index: dict[str, RemoteObject],
    ) -> SyncDecision:
        live_meta = live.files[path]
        remote_meta = remote.files[path]
        return SyncDecision(
            action=SyncAction.CONFLICT,
            reason="Changed locally and remotely since last sync",
            relative_path=path,
            remote_object=remote_index.get(path),
            conflict=ConflictInfo(
                path=path,
                local_modified_time=live_meta.modified_time,
                remote_modified_time=remote_meta.modified_time,
                local_hash=live_meta.hash,
                remote_hash=remote_meta.hash,
            ),
        )

    def _pull_both_tracked(
        self,
        path: str,
        base: str,
        theirs: str,
        live: SyncMeta,
        remote: SyncMeta,
        remote_index: dict[str, RemoteObject],
    ) -> SyncDecision:
        if base == theirs:
            # Local-only edits and deletes go out with the next push
            return SyncDecision(
                SyncAction.SKIP, "No remote changes", path, remote_index.get(path)
            )

        mine = live.hash_of(path)
        if mine is None:
            return self._download(path, "Deleted locally, changed remotely", remote_index)
        if mine == base:
            return self._download(path, "Remote file changed", remote_index)
        return self._conflict(path, live, remote, remote_index)

    def _pull_remote_deleted(
        self, path: str, base: str, live: SyncMeta, local: SyncMeta
    ) -> SyncDecision:
        live_meta = live.get(path)
        if live_meta is None:
            return SyncDecision(SyncAction.SKIP, "Deleted on both sides", path)
        if live_meta.hash == base:
            return SyncDecision(SyncAction.DELETE_LOCAL, "Deleted remotely", path)
        return SyncDecision(
            action=SyncAction.CONFLICT,
            reason="Changed locally but deleted remotely",
            relative_path=path,
            conflict=ConflictInfo(
                path=path,
                local_modified_time=live_meta.modified_time,
                # Deletion time is unknown; the last sync is the best bound
                remote_modified_time=local.last_updated_at,
                local_hash=live_meta.hash,
                remote_hash="",
                remote_deleted=True,
            ),
        )

    def _pull_remote_added(
        self,
        path: str,
        theirs: str,
        live: SyncMeta,
        remote: SyncMeta,
        remote_index: dict[str, RemoteObject],
    ) -> SyncDecision:
        mine = live.hash_of(path)
        if mine is None:
            return self._download(path, "New remote file", remote_index)
        if mine == theirs:
            return SyncDecision(
                SyncAction.SKIP,
                "Identical local copy, snapshot only",
                path,
                remote_index.get(path),
            )
        return self._conflict(path, live, remote, remote_index)

    # =========================
    # Full push / full pull
    # =========================

    def plan_full_push(
        self,
        live: SyncMeta,
        remote: Optional[SyncMeta],
        remote_index: dict[str, RemoteObject],
    ) -> list[SyncDecision]:
        """Plan a full push of every live file."""
        decisions: list[SyncDecision] = []
        for path in sorted(live.files):
            live_hash = live.files[path].hash
            remote_object = remote_index.get(path)
            saved = _hash(remote, path)

            if remote_object is None:
                decisions.append(SyncDecision(SyncAction.UPLOAD, "New local file", path))
            elif saved == live_hash:
                decisions.append(
                    SyncDecision(SyncAction.SKIP, "Same hash", path, remote_object)
                )
            else:
                reason = (
                    "Remote object is not tracked"
                    if saved is None
                    else "Remote version differs"
                )
                decisions.append(
                    SyncDecision(SyncAction.REPLACE_REMOTE, reason, path, remote_object)
                )
        return decisions

    def plan_full_pull(
        self,
        live: SyncMeta,
        remote: SyncMeta,
        remote_index: dict[str, RemoteObject],
    ) -> list[SyncDecision]:
        """Plan a full pull of every remote object.

        Nothing is deleted locally; local files that differ are backed up
        before being overwritten.
        """
        decisions: list[SyncDecision] = []
        for path in sorted(remote_index):
            remote_object = remote_index[path]
            mine = live.hash_of(path)
            saved = remote.hash_of(path)

            if mine is None:
                decisions.append(
                    SyncDecision(SyncAction.DOWNLOAD, "Missing locally", path, remote_object)
                )
            elif saved is not None and mine == saved:
                decisions.append(
                    SyncDecision(SyncAction.SKIP, "Same hash", path, remote_object)
                )
            else:
                decisions.append(
                    SyncDecision(
                        SyncAction.REPLACE_LOCAL,
                        "Local version differs",
                        path,
                        remote_object,
                    )
                )
        return decisions

    # =========================
    # Status
    # =========================

    def compute_diff(
        self,
        live: SyncMeta,
        local: Optional[SyncMeta],
        remote: Optional[SyncMeta],
        remote_index: dict[str, RemoteObject],
    ) -> SyncDiff:
        """Compare both sides without planning transfers.

        Used for status reports. Conflicts use the same both-sides-changed
        rule as push.
        """
        diff = SyncDiff()

        for path in sorted(live.files):
            live_meta = live.files[path]
            if path not in remote_index:
                if _hash(remote, path) is not None:
                    diff.deleted_remotely.append(path)
                else:
                    diff.to_upload.append(path)
                continue

            saved = _hash(remote, path)
            base = _hash(local, path)
            if saved is None:
                # Untracked remote object with the same name
                diff.to_download.append(path)
                continue

            local_changed = base is None or live_meta.hash != base
            remote_changed = base is not None and saved != base
            if local_changed and remote_changed:
                assert remote is not None
                diff.conflicts.append(
                    ConflictInfo(
                        path=path,
                        local_modified_time=live_meta.modified_time,
                        remote_modified_time=remote.files[path].modified_time,
                        local_hash=live_meta.hash,
                        remote_hash=saved,
                    )
                )
            elif local_changed:
                diff.to_upload.append(path)
            elif remote_changed:
                diff.to_download.append(path)

        for path in sorted(set(remote_index) - set(live.files)):
            if _hash(local, path) is not None:
                diff.deleted_locally.append(path)
            else:
                diff.to_download.append(path)

        return diff

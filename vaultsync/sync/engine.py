"""Core sync engine for executing sync operations."""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterator, Optional

from ..config import SyncSettings
from ..exceptions import (
    BackupError,
    DriveAPIError,
    DriveNotFoundError,
    PullRequiredError,
    SyncCancelledError,
    SyncError,
    SyncInProgressError,
    TransferError,
)
from ..models import RemoteObject, index_by_name
from ..utils import format_iso_timestamp, generate_untracked_filename, utc_now
from .comparator import FileComparator, PushGate, SyncAction, SyncDecision, SyncDiff
from .conflicts import (
    ConflictCallback,
    ConflictInfo,
    ConflictResolution,
    ConflictResolver,
    validate_resolutions,
)
from .ignore import META_FILE_NAMES, TEMP_PREFIX, PathFilter, is_temp_name
from .operations import SyncOperations, parallel_process
from .progress import SyncProgressTracker
from .protocols import FileTree, RemoteStore
from .scanner import DirectoryScanner
from .state import (
    SnapshotStore,
    SyncMeta,
    build_file_metadata,
    build_meta_from_tree,
    create_empty_meta,
)

logger = logging.getLogger(__name__)


class SyncStatus(str, Enum):
    """How a sync operation ended."""

    COMPLETED = "completed"
    UP_TO_DATE = "up_to_date"
    BLOCKED = "blocked"
    """Push refused because the remote changed since the last sync"""

    CANCELLED = "cancelled"
    """Conflict resolution was cancelled; nothing was changed"""

    NOTHING_TO_PULL = "nothing_to_pull"
    """No remote snapshot exists"""


@dataclass
class SyncResult:
    """Outcome of a sync operation."""

    operation: str
    """push, pull, push_all or pull_all"""

    status: SyncStatus = SyncStatus.COMPLETED
    diff: SyncDiff = field(default_factory=SyncDiff)
    uploaded: list[str] = field(default_factory=list)
    downloaded: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    """Local files deleted because they were deleted remotely"""

    untracked: list[str] = field(default_factory=list)
    """Locally deleted paths dropped from the snapshot"""

    skipped: list[str] = field(default_factory=list)
    renamed: dict[str, str] = field(default_factory=dict)
    """Remote objects moved to an untracked name (old name -> new name)"""

    backed_up: list[str] = field(default_factory=list)
    """Conflict backups written"""

    failures: dict[str, str] = field(default_factory=dict)
    """Paths whose step was skipped, with the error message"""

    committed: bool = False
    """Whether updated snapshots were written"""

    gate: Optional[PushGate] = None
    """Push precondition outcome (push only)"""

    @property
    def has_changes(self) -> bool:
        return bool(
            self.uploaded or self.downloaded or self.deleted or self.untracked
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "operation": self.operation,
            "status": self.status.value,
            "diff": self.diff.to_dict(),
            "uploaded": self.uploaded,
            "downloaded": self.downloaded,
            "deleted": self.deleted,
            "untracked": self.untracked,
            "skipped": self.skipped,
            "renamed": self.renamed,
            "backed_up": self.backed_up,
            "failures": self.failures,
            "committed": self.committed,
            "gate": self.gate.value if self.gate else None,
        }


@dataclass
class _SyncContext:
    """Everything a single run needs, loaded once up front."""

    operation: str
    settings: SyncSettings
    path_filter: PathFilter
    comparator: FileComparator
    resolver: ConflictResolver
    tracker: SyncProgressTracker
    listing: list[RemoteObject]
    remote_index: dict[str, RemoteObject]
    local: Optional[SyncMeta]
    remote: Optional[SyncMeta]
    now: datetime

    @property
    def timestamp(self) -> str:
        return format_iso_timestamp(self.now)


def _hashes(meta: SyncMeta) -> dict[str, str]:
    return {path: md.hash for path, md in meta.files.items()}


def _restore_entries(meta: SyncMeta, source: Optional[SyncMeta], paths: set[str]) -> SyncMeta:
    """Reset ``paths`` in ``meta`` to their entries in ``source``.

    Paths that ``source`` does not track are dropped.
    """
    for path in paths:
        entry = source.get(path) if source is not None else None
        meta = meta.with_file(path, entry) if entry else meta.without_file(path)
    return meta


class SyncEngine:
    """Core sync engine that reconciles a local tree with a remote vault folder.

    Only one operation runs at a time per engine; a second call while one
    is in progress raises :class:`SyncInProgressError` instead of waiting.

    Examples:
        >>> engine = SyncEngine(LocalTree(vault_path), client, vault_id)  # doctest: +SKIP
        >>> result = engine.push(resolve_conflicts=prompt_user)  # doctest: +SKIP
    """

    def __init__(
        self,
        tree: FileTree,
        remote: RemoteStore,
        vault_id: str,
        settings: Optional[SyncSettings] = None,
    ):
        """Initialize sync engine.

        Args:
            tree: Local file tree (the vault)
            remote: Remote object store
            vault_id: ID of the remote vault folder
            settings: Default settings for operations called without any
        """
        self.tree = tree
        self.remote = remote
        self.vault_id = vault_id
        self.settings = settings or SyncSettings()
        self.operations = SyncOperations(tree, remote, vault_id)
        self.snapshots = SnapshotStore(tree, remote, vault_id)
        self._lock = threading.Lock()

    # =========================
    # Run helpers
    # =========================

    @contextmanager
    def _exclusive(self, operation: str) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise SyncInProgressError(
                f"Cannot start {operation}: another sync operation is running"
            )
        try:
            yield
        finally:
            self._lock.release()

    def _prepare(
        self,
        operation: str,
        settings: Optional[SyncSettings],
        tracker: Optional[SyncProgressTracker],
    ) -> _SyncContext:
        settings = settings or self.settings
        path_filter = PathFilter(settings.exclude_patterns)
        scanner = DirectoryScanner(path_filter)
        tracker = tracker or SyncProgressTracker()
        tracker.on_sync_start(operation)

        listing = self.remote.list_files(self.vault_id)
        context = _SyncContext(
            operation=operation,
            settings=settings,
            path_filter=path_filter,
            comparator=FileComparator(path_filter),
            resolver=ConflictResolver(self.tree, settings.conflict_folder),
            tracker=tracker,
            listing=listing,
            remote_index=index_by_name(scanner.scan_remote(listing)),
            local=self.snapshots.read_local(),
            remote=self.snapshots.read_remote(listing),
            now=utc_now(),
        )
        logger.debug(
            f"{operation}: {len(context.remote_index)} remote objects, "
            f"local snapshot {'present' if context.local else 'absent'}, "
            f"remote snapshot {'present' if context.remote else 'absent'}"
        )
        return context

    def _live(self, context: _SyncContext) -> SyncMeta:
        return build_meta_from_tree(self.tree, context.path_filter, context.timestamp)

    def _ask(
        self,
        conflicts: list[ConflictInfo],
        resolve_conflicts: Optional[ConflictCallback],
    ) -> Optional[dict[str, ConflictResolution]]:
        """Ask the callback to resolve conflicts; None means cancelled."""
        if not conflicts:
            return {}
        if resolve_conflicts is None:
            raise SyncError(
                f"{len(conflicts)} conflict(s) found but no conflict handler was given"
            )
        logger.info(f"Found {len(conflicts)} conflict(s)")
        try:
            resolutions = resolve_conflicts(conflicts)
        except SyncCancelledError:
            resolutions = None
        if resolutions is None:
            logger.info("Conflict resolution cancelled")
            return None
        return validate_resolutions(conflicts, resolutions)

    def _run_batch(
        self,
        context: _SyncContext,
        decisions: list[SyncDecision],
        handler: Callable[[SyncDecision], Any],
    ) -> list[Any]:
        def process(decision: SyncDecision) -> Any:
            try:
                value = handler(decision)
            except SyncError as e:
                context.tracker.on_file_failed(
                    decision.relative_path, decision.action.value, str(e)
                )
                raise
            context.tracker.on_file_complete(
                decision.relative_path, decision.action.value
            )
            return value

        return parallel_process(decisions, process, context.settings.concurrency)

    def _record_failure(
        self, context: _SyncContext, result: SyncResult, path: str, error: Exception
    ) -> None:
        logger.warning(f"Skipping {path}: {error}")
        result.failures[path] = str(error)
        context.tracker.on_file_failed(path, "backup", str(error))

    def _backup_local(
        self, context: _SyncContext, result: SyncResult, path: str
    ) -> bool:
        """Back up the live local file; False (and a recorded failure) if not."""
        try:
            try:
                data = self.tree.read(path)
            except OSError as e:
                raise BackupError(f"Failed to read {path}: {e}", path=path) from e
            backup_path = context.resolver.backup(path, data, context.now)
        except BackupError as e:
            self._record_failure(context, result, path, e)
            return False
        result.backed_up.append(backup_path)
        context.tracker.on_backup_created(backup_path)
        return True

    def _backup_remote(
        self,
        context: _SyncContext,
        result: SyncResult,
        path: str,
        remote_object: RemoteObject,
    ) -> bool:
        """Back up a remote object's content into the conflict folder."""
        try:
            data = self.operations.read_remote(remote_object)
            backup_path = context.resolver.backup(path, data, context.now)
        except (BackupError, TransferError) as e:
            self._record_failure(context, result, path, e)
            return False
        result.backed_up.append(backup_path)
        context.tracker.on_backup_created(backup_path)
        return True

    def _commit(
        self,
        context: _SyncContext,
        result: SyncResult,
        local_meta: SyncMeta,
        remote_meta: Optional[SyncMeta] = None,
    ) -> None:
        """Write the local snapshot and, when given, the remote snapshot."""
        self.snapshots.write_local(local_meta)
        if remote_meta is not None:
            self.snapshots.write_remote(remote_meta, context.listing)
        result.committed = True
        context.tracker.on_snapshot_committed()
        logger.debug(f"{context.operation}: snapshot committed")

    def _finish(self, context: _SyncContext, result: SyncResult) -> SyncResult:
        for values in (
            result.uploaded,
            result.downloaded,
            result.deleted,
            result.untracked,
            result.skipped,
            result.backed_up,
        ):
            values.sort()
        context.tracker.on_sync_complete()
        logger.info(
            f"{context.operation} {result.status.value}: "
            f"{len(result.uploaded)} uploaded, {len(result.downloaded)} downloaded, "
            f"{len(result.deleted)} deleted, {len(result.skipped)} skipped"
        )
        return result

    # =========================
    # Incremental push
    # =========================

    def push(
        self,
        settings: Optional[SyncSettings] = None,
        resolve_conflicts: Optional[ConflictCallback] = None,
        tracker: Optional[SyncProgressTracker] = None,
    ) -> SyncResult:
        """Upload local changes to the remote vault.

        Runs a full push when no remote snapshot exists yet.

        Args:
            settings: Settings for this run (defaults to the engine's)
            resolve_conflicts: Callback choosing a side for each conflict
            tracker: Progress tracker receiving structured events

        Returns:
            SyncResult describing what was done

        Raises:
            PullRequiredError: If the remote has a snapshot but this device
                has never synced
            SyncInProgressError: If another operation is running
            TransferError: If a transfer failed (nothing is committed)
        """
        with self._exclusive("push"):
            context = self._prepare("push", settings, tracker)
            gate = context.comparator.check_push_gate(context.local, context.remote)

            if gate == PushGate.FULL_PUSH:
                logger.info("No remote snapshot found, running full push")
                result = self._push_all(context)
                result.gate = gate
                return result
            if gate == PushGate.PULL_REQUIRED:
                raise PullRequiredError(
                    "The remote vault has data this device never pulled. Pull first."
                )
            if gate == PushGate.REMOTE_NEWER:
                logger.info("Remote snapshot is newer than local, pull required")
                return self._finish(
                    context, SyncResult("push", status=SyncStatus.BLOCKED, gate=gate)
                )

            return self._push(context, resolve_conflicts)

    def _push(
        self,
        context: _SyncContext,
        resolve_conflicts: Optional[ConflictCallback],
    ) -> SyncResult:
        live = self._live(context)
        decisions = context.comparator.plan_push(
            live, context.local, context.remote, context.remote_index
        )
        result = SyncResult(
            "push", diff=SyncDiff.from_decisions(decisions), gate=PushGate.PROCEED
        )

        conflict_decisions = [d for d in decisions if d.action == SyncAction.CONFLICT]
        resolutions = self._ask(
            [d.conflict for d in conflict_decisions if d.conflict], resolve_conflicts
        )
        if resolutions is None:
            result.status = SyncStatus.CANCELLED
            return self._finish(context, result)

        uploads = [d for d in decisions if d.action == SyncAction.UPLOAD]
        result.skipped = [d.relative_path for d in decisions if d.action == SyncAction.SKIP]
        failed: set[str] = set()
        remote_wins: list[SyncDecision] = []

        for decision in conflict_decisions:
            path = decision.relative_path
            assert decision.remote_object is not None
            if resolutions[path] == ConflictResolution.REMOTE:
                if self._backup_local(context, result, path):
                    remote_wins.append(decision)
                else:
                    failed.add(path)
            elif self._backup_remote(context, result, path, decision.remote_object):
                uploads.append(decision)
            else:
                failed.add(path)

        context.tracker.on_plan_ready(len(uploads) + len(remote_wins))

        self._run_batch(
            context,
            remote_wins,
            lambda d: self.operations.download_file(d.remote_object),
        )
        result.downloaded = [d.relative_path for d in remote_wins]
        for path in result.downloaded:
            metadata = build_file_metadata(self.tree, path)
            if metadata:
                live = live.with_file(path, metadata)

        self._run_batch(
            context,
            uploads,
            lambda d: self.operations.upload_file(d.relative_path, d.remote_object),
        )
        result.uploaded = [d.relative_path for d in uploads]
        result.untracked = [
            d.relative_path for d in decisions if d.action == SyncAction.UNTRACK
        ]

        if result.has_changes:
            committed = live.stamped(context.timestamp)
            # Unresolved paths keep their old entries so the conflict resurfaces
            self._commit(
                context,
                result,
                _restore_entries(committed, context.local, failed),
                _restore_entries(committed, context.remote, failed),
            )
        elif not conflict_decisions:
            result.status = SyncStatus.UP_TO_DATE

        return self._finish(context, result)

    # =========================
    # Incremental pull
    # =========================

    def pull(
        self,
        settings: Optional[SyncSettings] = None,
        resolve_conflicts: Optional[ConflictCallback] = None,
        tracker: Optional[SyncProgressTracker] = None,
    ) -> SyncResult:
        """Bring remote changes into the local tree.

        Never modifies the remote side. Only the local snapshot is written.

        Args:
            settings: Settings for this run (defaults to the engine's)
            resolve_conflicts: Callback choosing a side for each conflict
            tracker: Progress tracker receiving structured events

        Returns:
            SyncResult describing what was done

        Raises:
            SyncInProgressError: If another operation is running
            TransferError: If a download or delete failed (nothing is committed)
        """
        with self._exclusive("pull"):
            context = self._prepare("pull", settings, tracker)
            if context.remote is None:
                logger.info("No remote snapshot found, nothing to pull")
                return self._finish(
                    context, SyncResult("pull", status=SyncStatus.NOTHING_TO_PULL)
                )
            return self._pull(context, context.remote, resolve_conflicts)

    def _pull(
        self,
        context: _SyncContext,
        remote: SyncMeta,
        resolve_conflicts: Optional[ConflictCallback],
    ) -> SyncResult:
        live = self._live(context)
        decisions = context.comparator.plan_pull(
            live, context.local, remote, context.remote_index
        )
        result = SyncResult("pull", diff=SyncDiff.from_decisions(decisions))

        conflict_decisions = [d for d in decisions if d.action == SyncAction.CONFLICT]
        resolutions = self._ask(
            [d.conflict for d in conflict_decisions if d.conflict], resolve_conflicts
        )
        if resolutions is None:
            result.status = SyncStatus.CANCELLED
            return self._finish(context, result)

        downloads = [d for d in decisions if d.action == SyncAction.DOWNLOAD]
        deletes = [d.relative_path for d in decisions if d.action == SyncAction.DELETE_LOCAL]
        result.skipped = [d.relative_path for d in decisions if d.action == SyncAction.SKIP]
        kept_local: list[str] = []
        failed: set[str] = set()

        for decision in conflict_decisions:
            path = decision.relative_path
            conflict = decision.conflict
            assert conflict is not None
            if resolutions[path] == ConflictResolution.LOCAL:
                if decision.remote_object is not None and not self._backup_remote(
                    context, result, path, decision.remote_object
                ):
                    failed.add(path)
                    continue
                if conflict.remote_deleted:
                    kept_local.append(path)
                continue

            if not conflict.remote_deleted and decision.remote_object is None:
                self._record_failure(
                    context, result, path, SyncError("Remote object missing")
                )
                failed.add(path)
            elif not self._backup_local(context, result, path):
                failed.add(path)
            elif conflict.remote_deleted:
                deletes.append(path)
            else:
                downloads.append(decision)

        context.tracker.on_plan_ready(len(downloads) + len(deletes))

        self._run_batch(
            context,
            downloads,
            lambda d: self.operations.download_file(d.remote_object),
        )
        result.downloaded = [d.relative_path for d in downloads]

        # Deletes run one at a time
        for path in sorted(deletes):
            try:
                self.operations.delete_local(path)
            except TransferError as e:
                context.tracker.on_file_failed(path, SyncAction.DELETE_LOCAL.value, str(e))
                raise
            result.deleted.append(path)
            context.tracker.on_file_complete(path, SyncAction.DELETE_LOCAL.value)
        if result.deleted:
            self.operations.prune_empty_directories(result.deleted)

        new_local = remote.stamped(context.timestamp, updated=False)
        for path in result.downloaded + kept_local:
            metadata = build_file_metadata(self.tree, path)
            if metadata:
                new_local = new_local.with_file(path, metadata)
        new_local = _restore_entries(new_local, context.local, failed)

        needs_adoption = (
            context.local is None
            or _hashes(context.local) != _hashes(new_local)
            or context.local.last_updated_at != new_local.last_updated_at
        )
        if result.has_changes or needs_adoption:
            self._commit(context, result, new_local)
        elif not conflict_decisions:
            result.status = SyncStatus.UP_TO_DATE

        return self._finish(context, result)

    # =========================
    # Full push / full pull
    # =========================

    def push_all(
        self,
        settings: Optional[SyncSettings] = None,
        tracker: Optional[SyncProgressTracker] = None,
    ) -> SyncResult:
        """Upload the whole vault, replacing every remote version that differs.

        Remote objects whose content differs are renamed to an untracked,
        timestamped name first, so no remote version is lost. Both snapshots
        are always rewritten.
        """
        with self._exclusive("push_all"):
            context = self._prepare("push_all", settings, tracker)
            return self._push_all(context)

    def _push_all(self, context: _SyncContext) -> SyncResult:
        live = self._live(context)
        decisions = context.comparator.plan_full_push(
            live, context.remote, context.remote_index
        )
        result = SyncResult(context.operation, diff=SyncDiff.from_decisions(decisions))
        result.skipped = [d.relative_path for d in decisions if d.action == SyncAction.SKIP]

        work = [d for d in decisions if d.action != SyncAction.SKIP]
        context.tracker.on_plan_ready(len(work))

        def handle(decision: SyncDecision) -> Optional[str]:
            new_name = None
            if decision.action == SyncAction.REPLACE_REMOTE:
                assert decision.remote_object is not None
                new_name = generate_untracked_filename(decision.relative_path, context.now)
                if self.operations.rename_remote(decision.remote_object, new_name) is None:
                    new_name = None
            self.operations.upload_file(decision.relative_path)
            return new_name

        renames = self._run_batch(context, work, handle)
        for decision, new_name in zip(work, renames):
            result.uploaded.append(decision.relative_path)
            if new_name:
                result.renamed[decision.relative_path] = new_name

        committed = live.stamped(context.timestamp)
        self._commit(context, result, committed, committed)
        return self._finish(context, result)

    def pull_all(
        self,
        settings: Optional[SyncSettings] = None,
        tracker: Optional[SyncProgressTracker] = None,
    ) -> SyncResult:
        """Download every remote object, backing up local files that differ.

        Nothing is deleted locally. The local snapshot becomes a copy of the
        remote one.
        """
        with self._exclusive("pull_all"):
            context = self._prepare("pull_all", settings, tracker)
            if context.remote is None:
                logger.info("No remote snapshot found, nothing to pull")
                return self._finish(
                    context, SyncResult("pull_all", status=SyncStatus.NOTHING_TO_PULL)
                )
            return self._pull_all(context, context.remote)

    def _pull_all(self, context: _SyncContext, remote: SyncMeta) -> SyncResult:
        live = self._live(context)
        decisions = context.comparator.plan_full_pull(live, remote, context.remote_index)
        result = SyncResult("pull_all", diff=SyncDiff.from_decisions(decisions))
        result.skipped = [d.relative_path for d in decisions if d.action == SyncAction.SKIP]

        failed: set[str] = set()
        work: list[SyncDecision] = []
        for decision in decisions:
            if decision.action == SyncAction.DOWNLOAD:
                work.append(decision)
            elif decision.action == SyncAction.REPLACE_LOCAL:
                if self._backup_local(context, result, decision.relative_path):
                    work.append(decision)
                else:
                    failed.add(decision.relative_path)

        context.tracker.on_plan_ready(len(work))
        self._run_batch(
            context,
            work,
            lambda d: self.operations.download_file(d.remote_object),
        )
        result.downloaded = [d.relative_path for d in work]

        new_local = remote.stamped(context.timestamp, updated=False)
        new_local = _restore_entries(new_local, context.local, failed)
        self._commit(context, result, new_local)
        return self._finish(context, result)

    # =========================
    # Status
    # =========================

    def compute_diff(self, settings: Optional[SyncSettings] = None) -> SyncDiff:
        """Compare the live tree with both snapshots without changing anything."""
        context = self._prepare("status", settings, None)
        return context.comparator.compute_diff(
            self._live(context), context.local, context.remote, context.remote_index
        )

    # =========================
    # Untracked remote files
    # =========================

    def get_untracked_files(self) -> list[RemoteObject]:
        """List remote objects the remote snapshot does not track.

        These are typically old versions renamed by a full push, or files
        deleted locally and dropped from the snapshot by a push.
        """
        listing = self.remote.list_files(self.vault_id)
        remote = self.snapshots.read_remote(listing)
        return [
            obj
            for obj in listing
            if not obj.is_folder
            and obj.name not in META_FILE_NAMES
            and not is_temp_name(obj.name)
            and (remote is None or obj.name not in remote)
        ]

    def restore_untracked_files(self, objects: list[RemoteObject]) -> list[str]:
        """Download untracked objects and start tracking them.

        Both snapshots gain an entry for every restored file.

        Returns:
            Relative paths that were restored
        """
        with self._exclusive("restore"):
            listing = self.remote.list_files(self.vault_id)
            local = self.snapshots.read_local() or create_empty_meta()
            remote = self.snapshots.read_remote(listing) or create_empty_meta()

            restored: list[str] = []
            for obj in objects:
                try:
                    self.operations.download_file(obj)
                except TransferError as e:
                    logger.error(f"Failed to restore untracked file {obj.name}: {e}")
                    continue
                metadata = build_file_metadata(self.tree, obj.name)
                if metadata:
                    local = local.with_file(obj.name, metadata)
                    remote = remote.with_file(obj.name, metadata)
                restored.append(obj.name)

            if restored:
                timestamp = format_iso_timestamp(utc_now())
                self.snapshots.write_local(local.stamped(timestamp))
                self.snapshots.write_remote(remote.stamped(timestamp), listing)
            return restored

    def delete_remote_files(self, file_ids: list[str]) -> int:
        """Delete remote objects by ID, continuing past failures.

        Used for untracked, temporary and excluded objects alike.

        Returns:
            Number of objects deleted
        """
        deleted = 0
        for file_id in file_ids:
            try:
                if self.remote.delete_file(file_id):
                    deleted += 1
            except DriveAPIError as e:
                logger.error(f"Failed to delete remote file {file_id}: {e}")
        return deleted

    def delete_untracked_files(self, file_ids: list[str]) -> int:
        """Delete untracked remote objects; IDs of tracked objects are ignored."""
        untracked = {obj.id for obj in self.get_untracked_files()}
        for file_id in file_ids:
            if file_id not in untracked:
                logger.warning(f"Not deleting {file_id}: not an untracked file")
        return self.delete_remote_files([i for i in file_ids if i in untracked])

    # =========================
    # Excluded remote files
    # =========================

    def get_excluded_remote_files(
        self, settings: Optional[SyncSettings] = None
    ) -> list[RemoteObject]:
        """List remote objects matching the exclude patterns."""
        settings = settings or self.settings
        scanner = DirectoryScanner(PathFilter(settings.exclude_patterns))
        return scanner.excluded_remote(self.remote.list_files(self.vault_id))

    # =========================
    # Temporary transfers
    # =========================

    def _find_object(self, name: str) -> Optional[RemoteObject]:
        return index_by_name(self.remote.list_files(self.vault_id)).get(name)

    def temp_upload(self, path: str) -> str:
        """Upload a local file to the temporary area without touching snapshots.

        Returns:
            ID of the temporary object
        """
        if not self.tree.exists(path):
            raise SyncError(f"File not found: {path}")
        name = TEMP_PREFIX + path
        existing = self._find_object(name)
        data = self.tree.read(path)
        if existing is not None:
            self.remote.update_file(existing.id, data)
            return existing.id
        return self.remote.create_file(name, data, self.vault_id)

    def temp_download(self, path: str) -> str:
        """Download the temporary copy of ``path`` into the local tree."""
        name = TEMP_PREFIX + path
        remote_object = self._find_object(name)
        if remote_object is None:
            raise DriveNotFoundError(f"Temp file not found: {name}")
        return self.operations.download_file(remote_object, path)

    def get_temp_files(self) -> list[RemoteObject]:
        """List objects in the temporary area."""
        return [
            obj
            for obj in self.remote.list_files(self.vault_id)
            if is_temp_name(obj.name)
        ]

    def delete_temp_files(self, file_ids: list[str]) -> int:
        """Delete temporary objects by ID; other IDs are ignored."""
        temp_ids = {obj.id for obj in self.get_temp_files()}
        return self.delete_remote_files([i for i in file_ids if i in temp_ids])

    def download_temp_files(self, file_ids: list[str]) -> list[str]:
        """Download temporary objects to their original paths.

        Returns:
            Relative paths that were written
        """
        by_id = {obj.id: obj for obj in self.get_temp_files()}
        downloaded: list[str] = []
        for file_id in file_ids:
            remote_object = by_id.get(file_id)
            if remote_object is None:
                logger.warning(f"Temp file {file_id} not found")
                continue
            path = remote_object.name[len(TEMP_PREFIX):]
            try:
                downloaded.append(self.operations.download_file(remote_object, path))
            except TransferError as e:
                logger.error(f"Failed to download temp file {remote_object.name}: {e}")
        return downloaded

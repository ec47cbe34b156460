"""Tests for the FileComparator class."""

import pytest

from vaultsync.models import RemoteObject
from vaultsync.sync.comparator import FileComparator, PushGate, SyncAction, SyncDiff
from vaultsync.sync.ignore import PathFilter
from vaultsync.sync.state import FileMetadata, SyncMeta

T0 = "2024-01-24T10:00:00.000Z"
T1 = "2024-01-24T11:00:00.000Z"


def meta(files: dict[str, str], updated: str = T0) -> SyncMeta:
    """Build a snapshot from a path -> hash mapping."""
    return SyncMeta(
        last_updated_at=updated,
        last_sync_timestamp=updated,
        files={path: FileMetadata(h, T0) for path, h in files.items()},
    )


def index(*names: str) -> dict[str, RemoteObject]:
    return {name: RemoteObject(id=f"id-{name}", name=name) for name in names}


@pytest.fixture
def comparator():
    return FileComparator(PathFilter([".obsidian/**"]))


class TestPushGate:
    """Tests for the precondition check before a push."""

    def test_no_remote_snapshot_means_full_push(self, comparator):
        assert comparator.check_push_gate(None, None) == PushGate.FULL_PUSH
        assert comparator.check_push_gate(meta({}), None) == PushGate.FULL_PUSH

    def test_no_local_snapshot_requires_pull(self, comparator):
        assert comparator.check_push_gate(None, meta({})) == PushGate.PULL_REQUIRED

    def test_remote_newer_blocks(self, comparator):
        gate = comparator.check_push_gate(meta({}, T0), meta({}, T1))
        assert gate == PushGate.REMOTE_NEWER

    def test_same_or_older_remote_proceeds(self, comparator):
        assert comparator.check_push_gate(meta({}, T0), meta({}, T0)) == PushGate.PROCEED
        assert comparator.check_push_gate(meta({}, T1), meta({}, T0)) == PushGate.PROCEED


class TestPlanPush:
    """One test per row of the push decision table."""

    def _decide(self, comparator, live, local, remote, remote_index):
        decisions = comparator.plan_push(live, local, remote, remote_index)
        return {d.relative_path: d for d in decisions}

    def test_new_local_file_is_created(self, comparator):
        decisions = self._decide(comparator, meta({"a": "X"}), meta({}), meta({}), {})
        assert decisions["a"].action == SyncAction.UPLOAD
        assert decisions["a"].remote_object is None

    def test_untracked_remote_object_is_overwritten(self, comparator):
        decisions = self._decide(
            comparator, meta({"a": "X"}), meta({}), meta({}), index("a")
        )
        assert decisions["a"].action == SyncAction.UPLOAD
        assert decisions["a"].remote_object.id == "id-a"

    def test_changed_local_file_is_uploaded(self, comparator):
        decisions = self._decide(
            comparator, meta({"a": "X2"}), meta({"a": "X1"}), meta({"a": "X1"}), index("a")
        )
        assert decisions["a"].action == SyncAction.UPLOAD

    def test_unchanged_file_is_skipped(self, comparator):
        decisions = self._decide(
            comparator, meta({"a": "X"}), meta({"a": "X"}), meta({"a": "X"}), index("a")
        )
        assert decisions["a"].action == SyncAction.SKIP

    def test_both_sides_changed_is_conflict(self, comparator):
        decisions = self._decide(
            comparator, meta({"a": "mine"}), meta({"a": "base"}), meta({"a": "theirs"}), index("a")
        )
        decision = decisions["a"]
        assert decision.action == SyncAction.CONFLICT
        assert decision.conflict.local_hash == "mine"
        assert decision.conflict.remote_hash == "theirs"
        assert not decision.conflict.remote_deleted

    def test_remote_changed_but_local_untouched_is_not_conflict(self, comparator):
        # Local matches base: push overwrites only if live differs from remote
        decisions = self._decide(
            comparator, meta({"a": "base"}), meta({"a": "base"}), meta({"a": "theirs"}), index("a")
        )
        assert decisions["a"].action == SyncAction.UPLOAD

    def test_conflict_needs_remote_object(self, comparator):
        decisions = self._decide(
            comparator, meta({"a": "mine"}), meta({"a": "base"}), meta({"a": "theirs"}), {}
        )
        assert decisions["a"].action == SyncAction.UPLOAD

    def test_locally_deleted_file_is_untracked(self, comparator):
        decisions = self._decide(
            comparator, meta({}), meta({"a": "X"}), meta({"a": "X", "b": "Y"}), index("a")
        )
        assert decisions["a"].action == SyncAction.UNTRACK
        assert decisions["b"].action == SyncAction.UNTRACK

    def test_excluded_tracked_path_is_not_untracked(self, comparator):
        decisions = self._decide(
            comparator, meta({}), meta({".obsidian/app.json": "X"}), meta({}), {}
        )
        assert decisions == {}


class TestPlanPull:
    """One test per row of the three pull decision tables."""

    def _action(self, comparator, live, local, remote, remote_index, path="a"):
        decisions = comparator.plan_pull(live, local, remote, remote_index)
        return {d.relative_path: d for d in decisions}[path]

    # Tracked on both sides

    def test_unchanged_remote_is_skipped(self, comparator):
        decision = self._action(
            comparator, meta({"a": "edited"}), meta({"a": "X"}), meta({"a": "X"}), index("a")
        )
        assert decision.action == SyncAction.SKIP

    def test_remote_change_downloaded_when_local_untouched(self, comparator):
        decision = self._action(
            comparator, meta({"a": "X1"}), meta({"a": "X1"}), meta({"a": "X2"}), index("a")
        )
        assert decision.action == SyncAction.DOWNLOAD

    def test_remote_change_downloaded_when_deleted_locally(self, comparator):
        decision = self._action(
            comparator, meta({}), meta({"a": "X1"}), meta({"a": "X2"}), index("a")
        )
        assert decision.action == SyncAction.DOWNLOAD

    def test_both_changed_is_conflict(self, comparator):
        decision = self._action(
            comparator, meta({"a": "mine"}), meta({"a": "base"}), meta({"a": "theirs"}), index("a")
        )
        assert decision.action == SyncAction.CONFLICT
        assert decision.conflict.remote_hash == "theirs"

    def test_download_without_remote_object_is_skipped(self, comparator):
        decision = self._action(
            comparator, meta({"a": "X1"}), meta({"a": "X1"}), meta({"a": "X2"}), {}
        )
        assert decision.action == SyncAction.SKIP

    # Tracked locally only (deleted remotely)

    def test_deleted_on_both_sides_is_skipped(self, comparator):
        decision = self._action(comparator, meta({}), meta({"a": "X"}), meta({}), {})
        assert decision.action == SyncAction.SKIP

    def test_remote_delete_applied_when_local_untouched(self, comparator):
        decision = self._action(
            comparator, meta({"a": "X"}), meta({"a": "X"}), meta({}), index("a")
        )
        assert decision.action == SyncAction.DELETE_LOCAL

    def test_remote_delete_of_edited_file_is_conflict(self, comparator):
        local = meta({"a": "X"}, T0)
        decision = self._action(comparator, meta({"a": "edited"}), local, meta({}), {})
        assert decision.action == SyncAction.CONFLICT
        assert decision.conflict.remote_deleted
        assert decision.conflict.remote_hash == ""
        assert decision.conflict.remote_modified_time == T0

    # Tracked remotely only (added remotely)

    def test_new_remote_file_is_downloaded(self, comparator):
        decision = self._action(comparator, meta({}), meta({}), meta({"a": "X"}), index("a"))
        assert decision.action == SyncAction.DOWNLOAD

    def test_identical_local_copy_is_skipped(self, comparator):
        decision = self._action(
            comparator, meta({"a": "X"}), meta({}), meta({"a": "X"}), index("a")
        )
        assert decision.action == SyncAction.SKIP

    def test_different_local_copy_is_conflict(self, comparator):
        decision = self._action(
            comparator, meta({"a": "mine"}), meta({}), meta({"a": "theirs"}), index("a")
        )
        assert decision.action == SyncAction.CONFLICT

    def test_no_local_snapshot_uses_remote_added_table(self, comparator):
        decisions = comparator.plan_pull(
            meta({"a": "X", "b": "old"}), None, meta({"a": "X", "b": "new"}), index("a", "b")
        )
        actions = {d.relative_path: d.action for d in decisions}
        assert actions == {"a": SyncAction.SKIP, "b": SyncAction.CONFLICT}

    def test_excluded_paths_are_ignored(self, comparator):
        decisions = comparator.plan_pull(
            meta({}), meta({}), meta({".obsidian/app.json": "X"}), index(".obsidian/app.json")
        )
        assert decisions == []


class TestFullPlans:
    """Tests for full push and full pull planning."""

    def test_full_push(self, comparator):
        decisions = comparator.plan_full_push(
            meta({"new": "N", "same": "S", "diff": "D2", "untracked": "U"}),
            meta({"same": "S", "diff": "D1"}),
            index("same", "diff", "untracked"),
        )
        actions = {d.relative_path: d.action for d in decisions}
        assert actions == {
            "new": SyncAction.UPLOAD,
            "same": SyncAction.SKIP,
            "diff": SyncAction.REPLACE_REMOTE,
            "untracked": SyncAction.REPLACE_REMOTE,
        }

    def test_full_pull_never_deletes(self, comparator):
        decisions = comparator.plan_full_pull(
            meta({"same": "S", "diff": "D1", "local-only": "L", "untracked": "U"}),
            meta({"same": "S", "diff": "D2", "missing": "M"}),
            index("same", "diff", "missing", "untracked"),
        )
        actions = {d.relative_path: d.action for d in decisions}
        assert actions == {
            "same": SyncAction.SKIP,
            "diff": SyncAction.REPLACE_LOCAL,
            "missing": SyncAction.DOWNLOAD,
            "untracked": SyncAction.REPLACE_LOCAL,
        }


class TestComputeDiff:
    """Tests for the status diff."""

    def test_compute_diff(self, comparator):
        live = meta({"up": "U2", "down": "D1", "both": "B3", "new": "N", "gone": "G"})
        local = meta({"up": "U1", "down": "D1", "both": "B1", "gone": "G", "del": "X"})
        remote = meta({"up": "U1", "down": "D2", "both": "B2", "gone": "G", "del": "X"})

        diff = comparator.compute_diff(
            live, local, remote, index("up", "down", "both", "del", "fresh")
        )

        assert diff.to_upload == ["new", "up"]
        assert diff.to_download == ["down", "fresh"]
        assert [c.path for c in diff.conflicts] == ["both"]
        assert diff.deleted_remotely == ["gone"]
        assert diff.deleted_locally == ["del"]
        assert not diff.is_empty

    def test_empty_diff(self, comparator):
        state = meta({"a": "X"})
        diff = comparator.compute_diff(state, state, state, index("a"))
        assert diff.is_empty
        assert diff.to_dict() == {
            "toUpload": [],
            "toDownload": [],
            "conflicts": [],
            "deletedLocally": [],
            "deletedRemotely": [],
        }

    def test_from_decisions_groups_actions(self, comparator):
        decisions = comparator.plan_push(
            meta({"a": "X"}), meta({"b": "Y"}), meta({"b": "Y"}), index("b")
        )
        diff = SyncDiff.from_decisions(decisions)
        assert diff.to_upload == ["a"]
        assert diff.deleted_locally == ["b"]

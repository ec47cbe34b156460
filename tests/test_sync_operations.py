"""Tests for transfer operations, the parallel executor and the local tree."""

import threading
import time
from pathlib import Path
from unittest.mock import Mock, patch

import pytest
from conftest import VAULT_ID, FakeRemote

from vaultsync.exceptions import DriveNetworkError, TransferError
from vaultsync.models import FOLDER_MIME_TYPE, RemoteObject
from vaultsync.sync import (
    TEMP_PREFIX,
    DirectoryScanner,
    LocalTree,
    PathFilter,
    SyncOperations,
    parallel_process,
)


class TestParallelProcess:
    """Tests for the bounded parallel executor."""

    def test_results_keep_input_order(self):
        def slow_square(x):
            time.sleep(0.01 * (5 - x))
            return x * x

        assert parallel_process(range(5), slow_square, concurrency=3) == [0, 1, 4, 9, 16]

    def test_empty_input(self):
        assert parallel_process([], lambda x: x) == []

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError, match="concurrency must be >= 1"):
            parallel_process([1], lambda x: x, concurrency=0)

    def test_concurrency_is_bounded(self):
        lock = threading.Lock()
        active = 0
        peak = 0

        def work(_):
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.01)
            with lock:
                active -= 1

        parallel_process(range(20), work, concurrency=4)

        assert 1 <= peak <= 4

    def test_first_error_stops_dispatch(self):
        started = []

        def work(x):
            started.append(x)
            if x == 0:
                raise RuntimeError("boom")
            return x

        with pytest.raises(RuntimeError, match="boom"):
            parallel_process(range(100), work, concurrency=1)

        assert started == [0]


class TestSyncOperations:
    """Tests for SyncOperations."""

    @pytest.fixture
    def remote(self):
        return FakeRemote()

    @pytest.fixture
    def operations(self, tmp_path, remote):
        return SyncOperations(LocalTree(tmp_path), remote, VAULT_ID)

    def test_upload_creates_then_updates(self, operations, remote, tmp_path):
        (tmp_path / "a.md").write_bytes(b"one")
        file_id = operations.upload_file("a.md")
        (tmp_path / "a.md").write_bytes(b"two")

        same_id = operations.upload_file("a.md", RemoteObject(id=file_id, name="a.md"))

        assert same_id == file_id
        assert remote.content("a.md") == b"two"

    def test_download_creates_parent_directories(self, operations, remote, tmp_path):
        file_id = remote.put("deep/nested/a.md", b"data")

        path = operations.download_file(RemoteObject(id=file_id, name="deep/nested/a.md"))

        assert path == "deep/nested/a.md"
        assert (tmp_path / "deep" / "nested" / "a.md").read_bytes() == b"data"

    def test_download_failure_is_transfer_error(self, operations):
        with pytest.raises(TransferError) as exc_info:
            operations.download_file(RemoteObject(id="missing", name="a.md"))
        assert exc_info.value.path == "a.md"

    def test_upload_of_missing_file_is_transfer_error(self, operations):
        with pytest.raises(TransferError, match="Failed to upload"):
            operations.upload_file("nope.md")

    def test_rename_failure_is_transfer_error(self, tmp_path):
        remote = Mock()
        remote.rename_file.side_effect = DriveNetworkError("offline")
        operations = SyncOperations(LocalTree(tmp_path), remote, VAULT_ID)

        with pytest.raises(TransferError, match="Failed to rename a.md"):
            operations.rename_remote(RemoteObject(id="1", name="a.md"), "a_old.md")

    def test_rename_of_vanished_object_returns_none(self, operations):
        assert operations.rename_remote(RemoteObject(id="gone", name="a.md"), "a_old.md") is None

    def test_prune_empty_directories(self, operations, tmp_path):
        (tmp_path / "a" / "b" / "c").mkdir(parents=True)
        (tmp_path / "a" / "keep.md").write_text("x")

        removed = operations.prune_empty_directories(["a/b/c/deleted.md"])

        assert removed == ["a/b/c", "a/b"]
        assert (tmp_path / "a").is_dir()


class TestLocalTree:
    """Tests for the local file tree."""

    def test_list_files_uses_posix_paths(self, tmp_path):
        (tmp_path / "notes").mkdir()
        (tmp_path / "notes" / "a.md").write_text("x")
        (tmp_path / "b.md").write_text("y")

        assert sorted(LocalTree(tmp_path).list_files()) == ["b.md", "notes/a.md"]

    def test_symlinks_are_skipped(self, tmp_path):
        (tmp_path / "real.md").write_text("x")
        (tmp_path / "link.md").symlink_to(tmp_path / "real.md")

        assert LocalTree(tmp_path).list_files() == ["real.md"]

    def test_paths_cannot_escape_root(self, tmp_path):
        tree = LocalTree(tmp_path / "vault")
        with pytest.raises(ValueError, match="escapes the vault root"):
            tree.read("../secret.txt")

    def test_delete_uses_trash_when_enabled(self, tmp_path):
        (tmp_path / "a.md").write_text("x")
        tree = LocalTree(tmp_path, use_trash=True)

        with patch("vaultsync.sync.scanner.send2trash.send2trash") as mock_trash:
            tree.delete("a.md")

        mock_trash.assert_called_once_with(str((tmp_path / "a.md").resolve()))

    def test_remove_dir_if_empty(self, tmp_path):
        (tmp_path / "empty").mkdir()
        (tmp_path / "full").mkdir()
        (tmp_path / "full" / "x").write_text("x")
        tree = LocalTree(tmp_path)

        assert tree.remove_dir_if_empty("empty") is True
        assert tree.remove_dir_if_empty("full") is False
        assert tree.remove_dir_if_empty("missing") is False


class TestDirectoryScanner:
    """Tests for remote listing filters."""

    def test_scan_remote_drops_folders_temp_and_excluded(self):
        scanner = DirectoryScanner(PathFilter([".obsidian/**"]))
        objects = [
            RemoteObject(id="1", name="a.md"),
            RemoteObject(id="2", name="dir", mime_type=FOLDER_MIME_TYPE),
            RemoteObject(id="3", name=TEMP_PREFIX + "a.md"),
            RemoteObject(id="4", name=".obsidian/app.json"),
            RemoteObject(id="5", name="_gdrive-vault-meta.json"),
        ]

        assert [o.id for o in scanner.scan_remote(objects)] == ["1"]
        assert [o.id for o in scanner.excluded_remote(objects)] == ["4"]

    def test_scan_local(self, tmp_path):
        (tmp_path / "b.md").write_text("x")
        (tmp_path / "a.md").write_text("x")
        (tmp_path / ".obsidian").mkdir()
        (tmp_path / ".obsidian" / "x.json").write_text("x")

        scanner = DirectoryScanner(PathFilter([".obsidian/**"]))

        assert scanner.scan_local(LocalTree(Path(tmp_path))) == ["a.md", "b.md"]

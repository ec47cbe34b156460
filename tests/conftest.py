"""Shared fixtures for vaultsync tests."""

import itertools
import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from vaultsync.exceptions import DriveNotFoundError
from vaultsync.models import RemoteObject
from vaultsync.sync import LocalTree, SyncEngine

VAULT_ID = "vault-folder"


class FakeRemote:
    """In-memory flat object store with the DriveClient surface."""

    def __init__(self):
        self.objects: dict[str, dict] = {}
        self.fail_on: set[str] = set()
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def put(self, name: str, data: bytes, parent_id: str = VAULT_ID) -> str:
        return self.create_file(name, data, parent_id)

    def names(self) -> list[str]:
        return sorted(obj["name"] for obj in self.objects.values())

    def content(self, name: str) -> bytes:
        for obj in self.objects.values():
            if obj["name"] == name:
                return obj["data"]
        raise KeyError(name)

    def list_files(self, folder_id: str) -> list[RemoteObject]:
        return [
            RemoteObject(id=file_id, name=obj["name"], modified_time="")
            for file_id, obj in sorted(self.objects.items())
            if obj["parent"] == folder_id
        ]

    def get_file(self, file_id: str) -> bytes:
        if file_id not in self.objects:
            raise DriveNotFoundError("Resource not found")
        return self.objects[file_id]["data"]

    def create_file(self, name: str, data: bytes, parent_id: str) -> str:
        if name in self.fail_on:
            raise DriveNotFoundError(f"Simulated failure for {name}")
        with self._lock:
            file_id = f"id{next(self._ids)}"
            self.objects[file_id] = {"name": name, "data": data, "parent": parent_id}
        return file_id

    def update_file(self, file_id: str, data: bytes) -> None:
        if file_id not in self.objects:
            raise DriveNotFoundError("Resource not found")
        self.objects[file_id]["data"] = data

    def rename_file(self, file_id: str, new_name: str) -> str:
        if file_id not in self.objects:
            raise DriveNotFoundError("Resource not found")
        self.objects[file_id]["name"] = new_name
        return file_id

    def delete_file(self, file_id: str) -> bool:
        return self.objects.pop(file_id, None) is not None


@pytest.fixture
def remote():
    """Provide an empty in-memory remote store."""
    return FakeRemote()


@pytest.fixture
def clock():
    """Make every engine run see a strictly later time."""
    start = datetime(2024, 1, 24, 10, 0, tzinfo=timezone.utc)
    ticks = itertools.count()

    def now():
        return start + timedelta(minutes=next(ticks))

    with patch("vaultsync.sync.engine.utc_now", side_effect=now):
        yield


def make_device(tmp_path, remote, name: str, **engine_kwargs) -> SyncEngine:
    """Create an engine for a vault directory on a simulated device."""
    root = tmp_path / name
    root.mkdir()
    return SyncEngine(LocalTree(root), remote, VAULT_ID, **engine_kwargs)


def write(engine: SyncEngine, path: str, content: str) -> None:
    full_path = engine.tree.root / path
    full_path.parent.mkdir(parents=True, exist_ok=True)
    full_path.write_text(content)


def read(engine: SyncEngine, path: str) -> str:
    return (engine.tree.root / path).read_text()

"""Collaborator interfaces the sync engine depends on.

The engine never assumes a specific host: the local side is any
:class:`FileTree` and the remote side is any :class:`RemoteStore`.
``vaultsync.sync.scanner.LocalTree`` and ``vaultsync.api.DriveClient`` are
the bundled implementations.
"""

from typing import Optional, Protocol

from ..models import RemoteObject


class FileTree(Protocol):
    """Host file tree capability (paths are relative, ``/``-separated)."""

    def list_files(self) -> list[str]:
        """Return the relative paths of every file in the tree."""
        ...

    def exists(self, path: str) -> bool:
        """Whether a file exists at ``path``."""
        ...

    def read(self, path: str) -> bytes:
        """Read the content of a file."""
        ...

    def write(self, path: str, data: bytes) -> None:
        """Create or overwrite a file (the parent directory must exist)."""
        ...

    def delete(self, path: str) -> None:
        """Delete a file."""
        ...

    def mkdir(self, path: str) -> None:
        """Create a directory (and its parents); existing is not an error."""
        ...

    def modified_time(self, path: str) -> float:
        """Return a file's modification time as a Unix timestamp."""
        ...

    def remove_dir_if_empty(self, path: str) -> bool:
        """Remove a directory if it has no children; return True if removed."""
        ...


class RemoteStore(Protocol):
    """Remote flat-namespace object API."""

    def list_files(self, folder_id: str) -> list[RemoteObject]:
        """List every object in the vault folder (all pages)."""
        ...

    def get_file(self, file_id: str) -> bytes:
        """Download an object's content."""
        ...

    def create_file(self, name: str, data: bytes, parent_id: Optional[str]) -> str:
        """Create an object and return its ID."""
        ...

    def update_file(self, file_id: str, data: bytes) -> None:
        """Overwrite an object's content."""
        ...

    def rename_file(self, file_id: str, new_name: str) -> str:
        """Rename an object and return its ID."""
        ...

    def delete_file(self, file_id: str) -> bool:
        """Delete an object; return False if it was already gone."""
        ...

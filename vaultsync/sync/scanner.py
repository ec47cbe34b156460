"""Local file tree access and directory scanning for sync operations."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import send2trash

from ..models import RemoteObject
from .ignore import META_FILE_NAMES, PathFilter, is_temp_name
from .protocols import FileTree

logger = logging.getLogger(__name__)


@dataclass
class LocalFile:
    """Represents a local file with metadata."""

    path: Path
    """Absolute path to the file"""

    relative_path: str
    """Relative path (using forward slashes for cross-platform compatibility)"""

    size: int
    """File size in bytes"""

    mtime: float
    """Last modification time (Unix timestamp)"""

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> "LocalFile":
        """Create LocalFile from a path.

        Args:
            file_path: Absolute path to the file
            base_path: Base path for calculating relative paths

        Returns:
            LocalFile instance
        """
        stat = file_path.stat()
        # Use as_posix() to ensure forward slashes on all platforms
        relative_path = file_path.relative_to(base_path).as_posix()
        return cls(
            path=file_path,
            relative_path=relative_path,
            size=stat.st_size,
            mtime=stat.st_mtime,
        )


class LocalTree:
    """A vault rooted at a local directory, implementing :class:`FileTree`.

    Examples:
        >>> tree = LocalTree(Path("/home/user/vault"))
        >>> tree.write("notes/today.md", b"hello")  # doctest: +SKIP
    """

    def __init__(self, root: Path, use_trash: bool = False):
        """Initialize the tree.

        Args:
            root: Vault root directory
            use_trash: If True, deleted files go to the system trash
        """
        self.root = root
        self.use_trash = use_trash

    def _resolve(self, path: str) -> Path:
        full_path = (self.root / path).resolve()
        root = self.root.resolve()
        if full_path != root and root not in full_path.parents:
            raise ValueError(f"Path escapes the vault root: {path}")
        return full_path

    def scan(self) -> list[LocalFile]:
        """Recursively scan the tree.

        Returns:
            List of LocalFile objects
        """
        return self._scan_directory(self.root)

    def _scan_directory(self, directory: Path) -> list[LocalFile]:
        files: list[LocalFile] = []
        try:
            for item in directory.iterdir():
                if item.is_symlink():
                    continue
                if item.is_file():
                    try:
                        files.append(LocalFile.from_path(item, self.root))
                    except OSError:
                        # Skip files we can't stat
                        continue
                elif item.is_dir():
                    files.extend(self._scan_directory(item))
        except PermissionError:
            logger.warning(f"Permission denied: {directory}")
        return files

    def list_files(self) -> list[str]:
        return [f.relative_path for f in self.scan()]

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def read(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    def write(self, path: str, data: bytes) -> None:
        self._resolve(path).write_bytes(data)

    def delete(self, path: str) -> None:
        full_path = self._resolve(path)
        if self.use_trash:
            send2trash.send2trash(str(full_path))
        else:
            full_path.unlink()

    def mkdir(self, path: str) -> None:
        self._resolve(path).mkdir(parents=True, exist_ok=True)

    def modified_time(self, path: str) -> float:
        return self._resolve(path).stat().st_mtime

    def remove_dir_if_empty(self, path: str) -> bool:
        full_path = self._resolve(path)
        if not full_path.is_dir() or any(full_path.iterdir()):
            return False
        full_path.rmdir()
        return True


class DirectoryScanner:
    """Builds filtered file lists for both sides of a sync.

    Examples:
        >>> scanner = DirectoryScanner(PathFilter([".obsidian/**"]))
        >>> paths = scanner.scan_local(LocalTree(Path("/vault")))  # doctest: +SKIP
    """

    def __init__(self, path_filter: Optional[PathFilter] = None):
        self.path_filter = path_filter or PathFilter()

    def scan_local(self, tree: FileTree) -> list[str]:
        """Return the sorted relative paths of every included local file."""
        return sorted(p for p in tree.list_files() if self.path_filter.is_included(p))

    def scan_remote(self, objects: list[RemoteObject]) -> list[RemoteObject]:
        """Filter a remote listing down to synchronizable file objects.

        Folder nodes, temporary objects, meta documents and excluded names
        are dropped.

        Args:
            objects: Raw listing of the vault folder

        Returns:
            List of remote objects taking part in sync
        """
        remote_files: list[RemoteObject] = []
        for obj in objects:
            if obj.is_folder or is_temp_name(obj.name):
                continue
            if self.path_filter.is_included(obj.name):
                remote_files.append(obj)
        return remote_files

    def excluded_remote(self, objects: list[RemoteObject]) -> list[RemoteObject]:
        """Return remote file objects that match the exclude patterns."""
        return [
            obj
            for obj in objects
            if not obj.is_folder
            and not is_temp_name(obj.name)
            and self.path_filter.is_excluded(obj.name)
            # Meta documents are excluded but must never be offered for deletion
            and obj.name not in META_FILE_NAMES
        ]

"""Transfer operations and the bounded parallel executor."""

import logging
import posixpath
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Optional, TypeVar

from ..exceptions import DriveAPIError, DriveNotFoundError, TransferError
from ..models import RemoteObject
from ..utils import DEFAULT_CONCURRENCY, parent_directories
from .protocols import FileTree, RemoteStore

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def parallel_process(
    items: Iterable[T],
    processor: Callable[[T], R],
    concurrency: int = DEFAULT_CONCURRENCY,
) -> list[R]:
    """Run ``processor`` over ``items`` with at most ``concurrency`` in flight.

    Workers pull the next index from a shared counter, so results are
    returned in input order regardless of completion order. The first
    failure stops further items from being started; work already in flight
    finishes, then that failure is raised.

    Args:
        items: Items to process
        processor: Function applied to each item
        concurrency: Maximum number of concurrent calls

    Returns:
        Results aligned with ``items``

    Raises:
        ValueError: If concurrency is less than 1
        Exception: The first exception raised by ``processor``

    Examples:
        >>> parallel_process([1, 2, 3], lambda x: x * 2, concurrency=2)
        [2, 4, 6]
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")
    work = list(items)
    if not work:
        return []

    results: list[Optional[R]] = [None] * len(work)
    lock = threading.Lock()
    stop = threading.Event()
    errors: list[Exception] = []
    next_index = 0

    def worker() -> None:
        nonlocal next_index
        while not stop.is_set():
            with lock:
                if next_index >= len(work):
                    return
                index = next_index
                next_index += 1
            try:
                results[index] = processor(work[index])
            except Exception as e:
                with lock:
                    if not errors:
                        errors.append(e)
                stop.set()
                return

    max_workers = min(concurrency, len(work))
    logger.debug(f"Processing {len(work)} items with {max_workers} workers")
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(worker) for _ in range(max_workers)]
        for future in futures:
            future.result()

    if errors:
        raise errors[0]
    return results  # type: ignore[return-value]


class SyncOperations:
    """Unified operations for upload/download with common interface.

    Every method raises :class:`TransferError` (wrapping the cause) on
    failure, except that a remote object which is already gone is not an
    error for deletes.
    """

    def __init__(self, tree: FileTree, remote: RemoteStore, vault_id: str):
        """Initialize sync operations.

        Args:
            tree: Local file tree
            remote: Remote object store
            vault_id: ID of the remote vault folder
        """
        self.tree = tree
        self.remote = remote
        self.vault_id = vault_id

    def ensure_parent(self, path: str) -> None:
        """Create the parent directory of ``path`` if it is missing."""
        parent = posixpath.dirname(path)
        if parent:
            self.tree.mkdir(parent)

    def upload_file(
        self, path: str, remote_object: Optional[RemoteObject] = None
    ) -> str:
        """Upload a local file, overwriting ``remote_object`` when given.

        Args:
            path: Relative path of the local file (also the object name)
            remote_object: Existing object to overwrite

        Returns:
            ID of the remote object
        """
        try:
            data = self.tree.read(path)
            if remote_object is not None:
                self.remote.update_file(remote_object.id, data)
                file_id = remote_object.id
            else:
                file_id = self.remote.create_file(path, data, self.vault_id)
        except (DriveAPIError, OSError) as e:
            raise TransferError(f"Failed to upload {path}: {e}", path=path) from e
        logger.debug(f"Uploaded {path} ({len(data)} bytes)")
        return file_id

    def read_remote(self, remote_object: RemoteObject) -> bytes:
        """Fetch the content of a remote object."""
        try:
            return self.remote.get_file(remote_object.id)
        except DriveAPIError as e:
            raise TransferError(
                f"Failed to download {remote_object.name}: {e}",
                path=remote_object.name,
            ) from e

    def download_file(
        self, remote_object: RemoteObject, path: Optional[str] = None
    ) -> str:
        """Download a remote object into the local tree.

        Args:
            remote_object: Object to download
            path: Local relative path (defaults to the object name)

        Returns:
            Relative path that was written
        """
        path = path or remote_object.name
        data = self.read_remote(remote_object)
        try:
            self.ensure_parent(path)
            self.tree.write(path, data)
        except OSError as e:
            raise TransferError(f"Failed to write {path}: {e}", path=path) from e
        logger.debug(f"Downloaded {path} ({len(data)} bytes)")
        return path

    def delete_local(self, path: str) -> None:
        """Delete a local file."""
        try:
            self.tree.delete(path)
        except OSError as e:
            raise TransferError(f"Failed to delete {path}: {e}", path=path) from e
        logger.debug(f"Deleted local file {path}")

    def rename_remote(
        self, remote_object: RemoteObject, new_name: str
    ) -> Optional[str]:
        """Rename a remote object.

        Returns:
            The object ID, or None if the object was already gone
        """
        try:
            file_id = self.remote.rename_file(remote_object.id, new_name)
        except DriveNotFoundError:
            logger.debug(f"Remote object already gone: {remote_object.name}")
            return None
        except DriveAPIError as e:
            raise TransferError(
                f"Failed to rename {remote_object.name}: {e}",
                path=remote_object.name,
            ) from e
        logger.debug(f"Renamed {remote_object.name} to {new_name}")
        return file_id

    def prune_empty_directories(self, deleted_paths: Iterable[str]) -> list[str]:
        """Remove directories left empty after deleting files.

        Parents of every deleted path are visited deepest first, so a chain
        of directories that only contained the deleted files disappears
        entirely.

        Returns:
            Directories that were removed
        """
        directories: set[str] = set()
        for path in deleted_paths:
            directories.update(parent_directories(path))

        removed: list[str] = []
        for directory in sorted(directories, key=lambda d: d.count("/"), reverse=True):
            try:
                if self.tree.remove_dir_if_empty(directory):
                    removed.append(directory)
            except OSError as e:
                logger.warning(f"Could not remove empty directory {directory}: {e}")
        if removed:
            logger.debug(f"Removed {len(removed)} empty directories")
        return removed

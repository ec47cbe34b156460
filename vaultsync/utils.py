"""Utility functions for vaultsync."""

import posixpath
from datetime import datetime, timezone
from typing import Optional

# =============================================================================
# Constants
# =============================================================================

# Default number of in-flight transfers
DEFAULT_CONCURRENCY: int = 5

# Retry configuration for token acquisition
DEFAULT_TOKEN_MAX_RETRIES: int = 6
DEFAULT_TOKEN_RETRY_DELAY: float = 5.0  # seconds


# =============================================================================
# Timestamp utilities
# =============================================================================


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_iso_timestamp(dt: datetime) -> str:
    """Format a datetime the way the remote meta document stores it.

    Args:
        dt: Datetime to format (naive values are assumed to be UTC)

    Returns:
        ISO-8601 string with millisecond precision and a ``Z`` suffix

    Examples:
        >>> format_iso_timestamp(datetime(2024, 1, 24, 10, 30, tzinfo=timezone.utc))
        '2024-01-24T10:30:00.000Z'
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return format_iso_timestamp(utc_now())


def timestamp_to_iso(timestamp: float) -> str:
    """Convert a Unix timestamp (e.g. ``st_mtime``) to ISO-8601."""
    return format_iso_timestamp(datetime.fromtimestamp(timestamp, tz=timezone.utc))


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse an ISO format timestamp from the API or a meta document.

    Args:
        timestamp_str: ISO format timestamp string (e.g., "2025-01-15T10:30:00.000Z")

    Returns:
        Aware datetime in UTC or None if parsing fails
    """
    if not timestamp_str:
        return None

    try:
        # The 'Z' suffix indicates UTC time
        if timestamp_str.endswith("Z"):
            timestamp_str = timestamp_str[:-1] + "+00:00"
        dt = datetime.fromisoformat(timestamp_str)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except (ValueError, AttributeError):
        return None


def is_newer(first: Optional[str], second: Optional[str]) -> bool:
    """Return True if timestamp ``first`` is strictly later than ``second``.

    Unparseable or missing values sort before everything else.
    """
    first_dt = parse_iso_timestamp(first)
    second_dt = parse_iso_timestamp(second)
    if first_dt is None:
        return False
    if second_dt is None:
        return True
    return first_dt > second_dt


def compact_timestamp(dt: Optional[datetime] = None) -> str:
    """Format a datetime as ``YYYYMMDD_HHMMSS`` (UTC).

    Examples:
        >>> compact_timestamp(datetime(2024, 1, 24, 10, 30, tzinfo=timezone.utc))
        '20240124_103000'
    """
    if dt is None:
        dt = utc_now()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y%m%d_%H%M%S")


# =============================================================================
# Backup and untracked name generation
# =============================================================================


def _split_name(file_name: str) -> tuple[str, str]:
    stem, ext = posixpath.splitext(file_name)
    return stem, ext


def generate_conflict_filename(
    original_path: str, conflict_folder: str, dt: Optional[datetime] = None
) -> str:
    """Generate the backup path of a file inside the conflict folder.

    Format: ``{conflict_folder}/{basename}_{YYYYMMDD_HHMMSS}{.ext}``

    Examples:
        >>> ts = datetime(2024, 1, 24, 10, 30, tzinfo=timezone.utc)
        >>> generate_conflict_filename("notes/daily.md", "sync_conflicts", ts)
        'sync_conflicts/daily_20240124_103000.md'
        >>> generate_conflict_filename("LICENSE", "sync_conflicts", ts)
        'sync_conflicts/LICENSE_20240124_103000'
    """
    file_name = posixpath.basename(original_path) or original_path
    stem, ext = _split_name(file_name)
    return f"{conflict_folder}/{stem}_{compact_timestamp(dt)}{ext}"


def generate_untracked_filename(
    original_path: str, dt: Optional[datetime] = None
) -> str:
    """Generate an untracked remote name next to the original path.

    Used to rename a remote object out of the way before Full Push
    uploads a fresh version under the original name.

    Examples:
        >>> ts = datetime(2024, 1, 24, 10, 30, tzinfo=timezone.utc)
        >>> generate_untracked_filename("notes/daily.md", ts)
        'notes/daily_20240124_103000.md'
    """
    directory, file_name = posixpath.split(original_path)
    stem, ext = _split_name(file_name)
    new_name = f"{stem}_{compact_timestamp(dt)}{ext}"
    return f"{directory}/{new_name}" if directory else new_name


def parent_directories(path: str) -> list[str]:
    """Return every parent directory of a relative path, deepest first.

    Examples:
        >>> parent_directories("a/b/c.md")
        ['a/b', 'a']
        >>> parent_directories("c.md")
        []
    """
    parts = path.split("/")[:-1]
    parents = []
    while parts:
        parents.append("/".join(parts))
        parts.pop()
    return parents

"""Glob-based path exclusion.

Patterns use ``*`` (any run of characters inside one path segment), ``**``
(any run of characters across segments) and ``?`` (one character other than
``/``). A pattern that does not start with ``*`` is anchored at the start of
the path; matching is a prefix match, so ``notes`` also excludes
``notes/today.md``.
"""

import logging
import re
from functools import lru_cache
from typing import Iterable

logger = logging.getLogger(__name__)

META_FILE_NAME_LOCAL = ".obsidian/gdrive-vault-meta.json"
META_FILE_NAME_REMOTE = "_gdrive-vault-meta.json"

META_FILE_NAMES = frozenset({META_FILE_NAME_LOCAL, META_FILE_NAME_REMOTE})

# Objects under this prefix are temporary transfers and never take part in sync
TEMP_PREFIX = "__TEMP__/"

_GLOBSTAR = "\x00"


@lru_cache(maxsize=256)
def _compile_glob(pattern: str) -> "re.Pattern[str]":
    """Translate a glob pattern into a compiled regular expression."""
    regex = pattern.replace("**", _GLOBSTAR)
    regex = re.sub(r"[.+^${}()|\[\]\\]", lambda m: "\\" + m.group(0), regex)
    regex = regex.replace("*", "[^/]*").replace("?", "[^/]")
    regex = regex.replace(_GLOBSTAR, ".*")
    if not pattern.startswith("*"):
        regex = "^" + regex
    return re.compile(regex)


def match_glob(path: str, pattern: str) -> bool:
    """Check whether a path matches a glob pattern.

    Args:
        path: Relative path using forward slashes
        pattern: Glob pattern

    Returns:
        True if the pattern matches

    Examples:
        >>> match_glob(".obsidian/plugins/x/main.js", ".obsidian/**")
        True
        >>> match_glob("notes/.obsidian/x", ".obsidian/**")
        False
        >>> match_glob("notes/sub/test.md", "**/*.md")
        True
    """
    normalized = pattern.strip()
    if not normalized:
        return False
    return _compile_glob(normalized).search(path) is not None


def is_temp_name(name: str) -> bool:
    """Whether a remote object name lives in the temporary transfer area."""
    return name.startswith(TEMP_PREFIX)


def should_exclude(path: str, patterns: Iterable[str]) -> bool:
    """Check if a path matches any of the exclude patterns."""
    return any(match_glob(path, pattern) for pattern in patterns)


class PathFilter:
    """Decides which paths take part in synchronization.

    Meta documents are always excluded, as is everything matching one of
    the configured patterns.

    Examples:
        >>> path_filter = PathFilter(["sync_conflicts/**"])
        >>> path_filter.is_excluded("sync_conflicts/a_20240101_000000.md")
        True
        >>> path_filter.is_excluded("notes/a.md")
        False
    """

    def __init__(self, patterns: Iterable[str] = ()):
        self.patterns = tuple(p for p in patterns if p.strip())

    def is_excluded(self, path: str) -> bool:
        """Check whether a path is excluded from synchronization."""
        if path in META_FILE_NAMES:
            return True
        if should_exclude(path, self.patterns):
            logger.debug(f"Ignoring (from patterns): {path}")
            return True
        return False

    def is_included(self, path: str) -> bool:
        """Inverse of :meth:`is_excluded`."""
        return not self.is_excluded(path)

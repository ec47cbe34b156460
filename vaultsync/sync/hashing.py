"""Content fingerprinting for change detection."""

import hashlib


def calculate_hash(data: bytes) -> str:
    """Calculate the SHA-256 digest of file content.

    Args:
        data: Raw file content

    Returns:
        64-character lowercase hex digest

    Examples:
        >>> calculate_hash(b"")
        'e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855'
    """
    return hashlib.sha256(data).hexdigest()


def calculate_hash_from_string(content: str) -> str:
    """Calculate the SHA-256 digest of a string (UTF-8 encoded)."""
    return calculate_hash(content.encode("utf-8"))

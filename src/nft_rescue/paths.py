# ABOUTME: Validated filesystem path segments built from untrusted strings.
# ABOUTME: Every chain name, wallet address, contract or token id passes through here before touching disk.

import re

_UNSAFE_SEGMENT_CHARS = re.compile(r"[^a-zA-Z0-9._-]+")


class PathSegmentError(ValueError):
    """Raised when a value cannot be used as a single path segment."""
    pass


def sanitize_path_segment(value: str) -> str:
    """Turn an untrusted string into a safe filename segment.

    Separators and traversal sequences are rejected outright; any other
    character outside [A-Za-z0-9._-] is replaced with '_'.

    Raises:
        PathSegmentError: If the value is empty or contains '/', '\\' or '..'.
    """
    trimmed = (value if isinstance(value, str) else "").strip()
    if not trimmed or "/" in trimmed or "\\" in trimmed or ".." in trimmed:
        raise PathSegmentError(f"Invalid path segment: {value!r}")
    return _UNSAFE_SEGMENT_CHARS.sub("_", trimmed)

"""
Version Parsing and Ordering.

This module provides fallible parsing of dotted numeric versions and the
ordering used for on-disk version directories.

Key features:
- parse_version() returns None instead of raising
- Unparsable versions sort before every parsable one
- Comparison helpers that tolerate unparsable operands
"""

import re

# Two to four dot-separated non-negative integers (major.minor[.build[.revision]])
_VERSION_RE = re.compile(r"^\d+(\.\d+){1,3}$")

Version = tuple[int, ...]


def parse_version(text: str | None) -> Version | None:
    """
    Parse a dotted numeric version string.

    Args:
        text: Version string (e.g., "1.2.3")

    Returns:
        Tuple of integer components, or None if the string is not a version
    """
    if not isinstance(text, str):
        return None

    text = text.strip()
    if not _VERSION_RE.match(text):
        return None

    return tuple(int(part) for part in text.split("."))


def is_valid_version(text: str | None) -> bool:
    """Check if string parses as a version."""
    return parse_version(text) is not None


def version_sort_key(text: str | None) -> tuple[int, Version]:
    """
    Sort key placing unparsable versions first.

    Parsable versions compare by their components. Note that missing
    components sort lower, so "1.0" < "1.0.0".

    Args:
        text: Version string

    Returns:
        Key tuple usable with sorted()
    """
    parsed = parse_version(text)
    if parsed is None:
        return (0, ())
    return (1, parsed)


def compare_versions(v1: str | None, v2: str | None) -> int:
    """
    Compare two version strings.

    Args:
        v1: First version
        v2: Second version

    Returns:
        -1 if v1 < v2, 0 if v1 == v2, 1 if v1 > v2
    """
    k1 = version_sort_key(v1)
    k2 = version_sort_key(v2)
    if k1 < k2:
        return -1
    if k1 > k2:
        return 1
    return 0


def is_newer(candidate: str | None, current: str | None) -> bool:
    """
    Check if candidate is a strictly newer version than current.

    An unparsable candidate is never newer. An unparsable current version is
    older than any parsable candidate.
    """
    if parse_version(candidate) is None:
        return False
    return compare_versions(candidate, current) > 0

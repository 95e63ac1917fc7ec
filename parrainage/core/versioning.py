"""Dotted numeric version comparison for the DB version marker."""

import re
from typing import Tuple

_VERSION_PART_RE = re.compile(r"\d+")


def parse_version(version: str) -> Tuple[int, ...]:
    """
    Parse "2.0.0" into (2, 0, 0).

    Non-numeric suffixes are ignored ("2.1.0-beta" -> (2, 1, 0)) and an
    empty or missing value parses as (0,).
    """
    parts = []
    for chunk in str(version or "").strip().split("."):
        match = _VERSION_PART_RE.match(chunk)
        if not match:
            break
        parts.append(int(match.group()))
    return tuple(parts) or (0,)


def compare_versions(left: str, right: str) -> int:
    """Return -1, 0 or 1 as `left` is lower than, equal to or greater than `right`."""
    a, b = parse_version(left), parse_version(right)
    width = max(len(a), len(b))
    a += (0,) * (width - len(a))
    b += (0,) * (width - len(b))
    return (a > b) - (a < b)


def version_gte(left: str, right: str) -> bool:
    return compare_versions(left, right) >= 0


def version_lt(left: str, right: str) -> bool:
    return compare_versions(left, right) < 0

"""Version ordering used to rank repository versions.

Versions are dot separated non-negative integers. Missing trailing
components count as zero, so ``1.2`` and ``1.2.0`` are equal. Strings that
are not purely digits and dots fall back to lexicographic comparison.
"""
from __future__ import annotations

import functools
import re
from typing import Iterable, List, Optional

_NUMERIC = re.compile(r"[\d.]*")


def _components(version: str) -> List[int]:
    parts = version.split(".")
    while parts and parts[-1] == "":
        parts.pop()
    return [int(p) if p else 0 for p in parts]


def _compare_numeric(version1: str, version2: str) -> int:
    arr1 = _components(version1)
    arr2 = _components(version2)

    for i in range(max(len(arr1), len(arr2))):
        v1 = arr1[i] if i < len(arr1) else 0
        v2 = arr2[i] if i < len(arr2) else 0
        if v1 != v2:
            return 1 if v1 > v2 else -1

    return 0


def compare_versions(version1: Optional[str], version2: Optional[str]) -> int:
    """Compare two version strings.

    Returns:
        a negative number, zero or a positive number as version1 is lower,
        equal or higher than version2. Blank versions sort lowest.
    """
    blank1 = not (version1 or "").strip()
    blank2 = not (version2 or "").strip()
    if blank1 and blank2:
        return 0
    if blank1:
        return -1
    if blank2:
        return 1

    if not (_NUMERIC.fullmatch(version1) and _NUMERIC.fullmatch(version2)):
        return (version1 > version2) - (version1 < version2)
    return _compare_numeric(version1, version2)


version_key = functools.cmp_to_key(compare_versions)


def sort_versions(versions: Iterable[str]) -> List[str]:
    """Return the versions in ascending order."""
    return sorted(versions, key=version_key)


def max_version(versions: Iterable[str]) -> Optional[str]:
    """Return the highest version or None for an empty input."""
    ordered = sort_versions(versions)
    return ordered[-1] if ordered else None

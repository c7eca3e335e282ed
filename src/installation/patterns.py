"""Ant-style path patterns and the exclude/preserve merge.

Patterns use ``/`` as separator. ``*`` and ``?`` match inside one path
segment, ``**`` matches any number of segments and a trailing ``/`` is short
for ``/**``. Exclude patterns also match everything below a matching
directory.
"""
from __future__ import annotations

import re
from typing import Iterable, List, Pattern, Set

from descriptor.models import InstallItem, PatternSpec


def _translate_segment(segment: str) -> str:
    out = []
    for ch in segment:
        if ch == "*":
            out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        else:
            out.append(re.escape(ch))
    return "".join(out)


def compile_pattern(pattern: str) -> Pattern[str]:
    """Translate one Ant pattern into a compiled regular expression."""
    pattern = pattern.replace("\\", "/").lstrip("/")
    if pattern.endswith("/"):
        pattern += "**"
    segments = pattern.split("/")
    parts: List[str] = []
    for idx, segment in enumerate(segments):
        last = idx == len(segments) - 1
        if segment == "**":
            parts.append(".*" if last else "(?:[^/]*/)*")
        else:
            parts.append(_translate_segment(segment) + ("" if last else "/"))
    return re.compile("".join(parts))


def match_path(pattern: str, path: str) -> bool:
    """Check a relative path against one Ant pattern."""
    return compile_pattern(pattern).fullmatch(path.replace("\\", "/").lstrip("/")) is not None


def _ancestors(path: str) -> List[str]:
    parts = path.split("/")
    return ["/".join(parts[:i]) for i in range(1, len(parts) + 1)]


class PatternSet:
    """Include and exclude patterns evaluated on relative paths.

    A path is selected when it matches any include (or no include is
    configured) and neither it nor one of its parent directories matches an
    exclude.
    """

    def __init__(self, includes: Iterable[str] = (), excludes: Iterable[str] = ()):
        self.includes: Set[str] = {p for p in includes if p}
        self.excludes: Set[str] = {p for p in excludes if p}
        self._inc = [compile_pattern(p) for p in sorted(self.includes)]
        self._exc = [compile_pattern(p) for p in sorted(self.excludes)]

    def __repr__(self) -> str:
        return f"PatternSet(includes={sorted(self.includes)}, excludes={sorted(self.excludes)})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, PatternSet):
            return NotImplemented
        return self.includes == other.includes and self.excludes == other.excludes

    @classmethod
    def from_spec(cls, spec: PatternSpec) -> "PatternSet":
        return cls(spec.includes, spec.excludes)

    @property
    def is_empty(self) -> bool:
        return not self.includes and not self.excludes

    def included(self, path: str) -> bool:
        """True if ``path`` matches one of the include patterns."""
        path = path.replace("\\", "/").lstrip("/")
        return any(rx.fullmatch(path) for rx in self._inc)

    def excluded(self, path: str) -> bool:
        """True if ``path`` or a parent directory matches an exclude pattern."""
        path = path.replace("\\", "/").lstrip("/")
        return any(rx.fullmatch(p) for p in _ancestors(path) for rx in self._exc)

    def selects(self, path: str) -> bool:
        """Include/exclude evaluation as a file filter."""
        if self.excluded(path):
            return False
        return not self._inc or self.included(path)

    def preserves(self, path: str) -> bool:
        """Evaluation as a preserve set; an empty set keeps nothing."""
        return not self.is_empty and self.selects(path)

    def with_includes(self, patterns: Iterable[str]) -> "PatternSet":
        """Return a copy with additional include patterns."""
        return PatternSet(self.includes | set(patterns), self.excludes)

    def with_excludes(self, patterns: Iterable[str]) -> "PatternSet":
        """Return a copy with additional exclude patterns."""
        return PatternSet(self.includes, self.excludes | set(patterns))


def merge_preserve(component: PatternSpec, item: PatternSpec) -> PatternSet:
    """Merge component and item preserve configuration.

    Item patterns override the component: a component include the item
    excludes is dropped, as is a component exclude the item includes.
    """
    includes = set(item.includes) | (set(component.includes) - set(item.excludes))
    excludes = set(item.excludes) | (set(component.excludes) - set(item.includes))
    return PatternSet(includes, excludes)


def merge_excludes(component_excludes: Iterable[str], item: InstallItem,
                   is_update: bool) -> PatternSet:
    """Exclude set of one install operation.

    Item ``excludes_from_update`` only apply when updating a previous
    installation.
    """
    excludes = set(component_excludes) | set(item.excludes)
    if is_update:
        excludes |= set(item.excludes_from_update)
    return PatternSet(excludes=excludes)

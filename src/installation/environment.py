"""Operating system and environment applicability of declared items."""

from __future__ import annotations

import platform
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, Optional


class OSType(Enum):
    """Operating system families used as item classifiers."""
    WINDOWS = "windows"
    LINUX = "linux"
    MACOS = "macos"
    OTHER = "other"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "OSType":
        """Map an OS name or classifier such as ``linux-x64`` to a family."""
        key = (value or "").lower()
        if "mac" in key or "darwin" in key:
            return cls.MACOS
        if "win" in key:
            return cls.WINDOWS
        if "nux" in key:
            return cls.LINUX
        return cls.OTHER


def detect_os(override: Optional[str] = None) -> OSType:
    """Return the OS family of the running interpreter or of ``override``."""
    return OSType.from_string(override or platform.system() or "generic")


@dataclass(frozen=True)
class InstallEnvironment:
    """Detected OS and configured environment tags of one reconciliation."""
    os_type: OSType = OSType.OTHER
    types: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def create(cls, os_name: Optional[str] = None,
               types: Optional[Iterable[str]] = None) -> "InstallEnvironment":
        """Build an environment, detecting the OS unless ``os_name`` is given."""
        return cls(detect_os(os_name), frozenset(types or ()))

    def matches_classifier(self, classifier: Optional[str]) -> bool:
        """True for a blank classifier or one naming this OS family."""
        if not classifier or not classifier.strip():
            return True
        return OSType.from_string(classifier) == self.os_type

    def matches_types(self, item_types: Optional[Iterable[str]]) -> bool:
        """True if either side declares no types or both share one."""
        item_types = set(item_types or ())
        if not item_types or not self.types:
            return True
        return bool(item_types & self.types)


def is_applicable(item, environment: InstallEnvironment) -> bool:
    """Check classifier and types of a declared item against the environment."""
    return (environment.matches_classifier(getattr(item, "classifier", ""))
            and environment.matches_types(getattr(item, "types", ())))

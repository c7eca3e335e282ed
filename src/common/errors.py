"""Exception taxonomy for component reconciliation.

Every error raised by the engine derives from InstallError so that callers
can abort one component and continue with the next one.
"""
from __future__ import annotations

from typing import Optional


class InstallError(Exception):
    """Base class for all reconciliation failures."""


class ResolutionFailure(InstallError):
    """No configured repository yields a usable version for a dependency."""

    def __init__(self, dependency: str, repositories: Optional[list] = None):
        self.dependency = dependency
        self.repositories = list(repositories or [])
        where = ", ".join(self.repositories) if self.repositories else "no repositories"
        super().__init__(f"Dependency '{dependency}' is not available in {where}.")


class FormatMismatch(InstallError):
    """The descriptor was written by an incompatible format version."""

    def __init__(self, descriptor: str, found: str, expected: str):
        self.descriptor = descriptor
        self.found = found
        self.expected = expected
        super().__init__(
            f"The component descriptor '{descriptor}' was created with format version "
            f"'{found}', but this installer supports '{expected}'."
        )


class PathConflict(InstallError):
    """Two sources claim the same destination path in one pass."""

    def __init__(self, path: str, first: str = "", second: str = ""):
        self.path = path
        self.first = first
        self.second = second
        detail = f" ({first} / {second})" if first or second else ""
        super().__init__(f"Destination path '{path}' is declared more than once{detail}.")


class InstallIOError(InstallError):
    """Network or filesystem failure with the item and path involved."""

    def __init__(self, message: str, *, item: str = "", path: str = "",
                 status_code: Optional[int] = None):
        self.item = item
        self.path = path
        self.status_code = status_code
        parts = [message]
        if item:
            parts.append(f"item={item}")
        if path:
            parts.append(f"path={path}")
        if status_code is not None:
            parts.append(f"status={status_code}")
        super().__init__(" ".join(parts))


class UnsupportedRepository(InstallError):
    """A configured repository is of a kind the resolver does not understand."""


class DescriptorError(InstallError):
    """The component descriptor document is malformed."""


class ConfigError(InstallError):
    """The install configuration is malformed."""

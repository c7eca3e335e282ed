"""Data models for dependency coordinates, repositories and resolution results."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from common.errors import UnsupportedRepository
from common.http_client import Credentials
from constants import Constants
from .patterns import substitute


class RepositoryType(Enum):
    """Supported repository layouts.

    IVY is the pattern layout: artifact paths come from a substitution pattern
    and versions from directory listings. MAVEN derives paths from the group
    segments and reads versions from maven-metadata.xml.
    """
    IVY = "ivy"
    MAVEN = "maven"

    @classmethod
    def from_string(cls, value: str) -> "RepositoryType":
        """Map a configuration string to a repository type."""
        key = (value or "").strip().lower()
        for item in cls:
            if item.value == key:
                return item
        raise UnsupportedRepository(
            f"This kind of repository configuration '{value}' is not supported."
        )


@dataclass(frozen=True)
class Dependency:
    """Coordinates of a module: group, module and version or version pattern.

    The version may be exact, ``latest`` (or a bare ``+``), or a prefix
    pattern ending in ``+`` such as ``2.3.+``.
    """
    group: str
    module: str
    version: str = Constants.LATEST_VERSION

    def __str__(self) -> str:
        return f"{self.group}:{self.module}:{self.version}"

    @property
    def has_latest_version(self) -> bool:
        """True if any version is acceptable."""
        return self.version in ("+", Constants.LATEST_VERSION)

    @property
    def has_version_pattern(self) -> bool:
        """True for prefix patterns like ``1.2.+``."""
        return self.version.endswith("+") and self.version != "+"

    @property
    def has_latest_pattern(self) -> bool:
        """True if the version has to be computed from the available versions."""
        return self.version.endswith("+") or self.version == Constants.LATEST_VERSION

    @property
    def version_pattern(self) -> str:
        """Regular expression matching the acceptable versions."""
        if self.has_latest_version:
            return ".*"
        if self.has_version_pattern:
            return re.escape(self.version[:-1]) + ".*"
        return re.escape(self.version)

    def matches(self, version: str) -> bool:
        """Check a concrete version against the requested version."""
        return re.fullmatch(self.version_pattern, version) is not None

    def with_version(self, version: str) -> "Dependency":
        """Return the same coordinates with a concrete version."""
        return Dependency(self.group, self.module, version)


@dataclass(frozen=True)
class Artifact:
    """One downloadable file of a module."""
    name: str
    type: str
    ext: str
    classifier: str = ""


@dataclass(frozen=True)
class Repository:
    """A configured repository.

    ``pattern`` is only used by the IVY layout.
    """
    type: RepositoryType
    url: str
    credentials: Credentials = field(default_factory=Credentials)
    pattern: str = ""

    @property
    def base_url(self) -> str:
        """Repository URL with a trailing slash."""
        return self.url if self.url.endswith("/") else self.url + "/"

    def __str__(self) -> str:
        return f"{self.type.value}:{self.url}"


@dataclass(frozen=True)
class ResolvedLocation:
    """Outcome of a version resolution.

    Attributes:
        dependency: the requested coordinates with the concrete version
        repository: repository that provided the version
        version: concrete version
        artifact_stem: Maven layout only; module path plus file name stem,
            e.g. ``.../app/1.0-SNAPSHOT/app-1.0-20240101.120000-3``
    """
    dependency: Dependency
    repository: Repository
    version: str
    artifact_stem: str = ""

    def artifact_url(self, artifact: Artifact) -> str:
        """Compute the download URL of an artifact at the resolved version."""
        if self.repository.type == RepositoryType.MAVEN:
            # Artifacts named differently from the module are published with
            # their name as classifier.
            qualifiers = [artifact.name if artifact.name != self.dependency.module else "",
                          artifact.classifier]
            suffix = "".join(f"-{q}" for q in qualifiers if q)
            return f"{self.artifact_stem}{suffix}.{artifact.ext}"
        path = substitute(
            self.repository.pattern,
            organisation=self.dependency.group,
            module=self.dependency.module,
            revision=self.version,
            artifact=artifact.name,
            type=artifact.type,
            ext=artifact.ext,
            classifier=artifact.classifier,
        )
        return self.repository.base_url + path

    def descriptor_url(self) -> str:
        """Download URL of the component descriptor.

        Maven layouts publish it with the descriptor type as classifier.
        """
        name = Constants.DESCRIPTOR_TYPE
        if self.repository.type == RepositoryType.MAVEN:
            artifact = Artifact(self.dependency.module, name, Constants.DESCRIPTOR_EXTENSION, name)
        else:
            artifact = Artifact(self.dependency.module, name, Constants.DESCRIPTOR_EXTENSION)
        return self.artifact_url(artifact)


@dataclass
class ResolutionResult:
    """Per-repository resolution outcome used for logging and diagnostics."""
    repository: Repository
    version: Optional[str]
    candidate_count: int
    error: Optional[str] = None

"""Base class shared by the repository layout resolvers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from common.http_client import TransportConfig
from ..comparator import sort_versions
from ..models import Dependency, Repository, RepositoryType, ResolvedLocation

logger = logging.getLogger(__name__)


class VersionResolver(ABC):
    """Computes a concrete version of a dependency inside one repository."""

    def __init__(self, transport: Optional[TransportConfig] = None):
        self.transport = transport or TransportConfig()

    @property
    @abstractmethod
    def repository_type(self) -> RepositoryType:
        """Repository layout handled by this resolver."""

    @abstractmethod
    def fetch_candidates(self, dependency: Dependency, repository: Repository) -> List[str]:
        """Return all versions the repository publishes for the dependency.

        Raises:
            InstallIOError: if the listing or metadata cannot be read.
        """

    @abstractmethod
    def locate(self, dependency: Dependency, repository: Repository,
               version: str) -> ResolvedLocation:
        """Build the resolved location for a concrete version."""

    def pick(self, dependency: Dependency,
             candidates: List[str]) -> Tuple[Optional[str], int, Optional[str]]:
        """Select the highest candidate accepted by the requested version.

        Returns:
            Tuple of (resolved_version, candidate_count, error_message)
        """
        if not candidates:
            return None, 0, "No versions available"

        matching = [v for v in candidates if dependency.matches(v)]
        if not matching:
            if dependency.has_latest_pattern:
                return None, len(candidates), f"No versions match '{dependency.version}'"
            return None, len(candidates), f"Version {dependency.version} not found"

        return sort_versions(matching)[-1], len(candidates), None

    def resolve(self, dependency: Dependency,
                repository: Repository) -> Tuple[Optional[ResolvedLocation], int, Optional[str]]:
        """Fetch candidates, pick a version and locate it.

        Returns:
            Tuple of (location or None, candidate_count, error_message)
        """
        candidates = self.fetch_candidates(dependency, repository)
        version, count, error = self.pick(dependency, candidates)
        if version is None:
            return None, count, error
        return self.locate(dependency, repository, version), count, None

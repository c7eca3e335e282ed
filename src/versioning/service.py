"""Version resolution across an ordered list of repositories."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from common.errors import InstallIOError, ResolutionFailure, UnsupportedRepository
from common.http_client import TransportConfig
from common.logging_utils import Timer, extra_context, is_debug_enabled, safe_url
from .comparator import compare_versions
from .models import Dependency, Repository, RepositoryType, ResolutionResult, ResolvedLocation
from .resolvers import IvyVersionResolver, MavenVersionResolver, VersionResolver

logger = logging.getLogger(__name__)


class VersionResolutionService:
    """Determines the concrete version of a dependency and where it lives.

    Repositories are tried in order. An exact version stops at the first
    repository that publishes it; ``latest`` and prefix patterns evaluate all
    repositories and take the overall maximum. For equal versions the
    repository listed first wins.
    """

    def __init__(self, transport: Optional[TransportConfig] = None,
                 resolvers: Optional[Dict[RepositoryType, VersionResolver]] = None):
        self.transport = transport or TransportConfig()
        self.resolvers: Dict[RepositoryType, VersionResolver] = resolvers or {
            RepositoryType.IVY: IvyVersionResolver(self.transport),
            RepositoryType.MAVEN: MavenVersionResolver(self.transport),
        }
        self.results: List[ResolutionResult] = []

    def resolver_for(self, repository: Repository) -> VersionResolver:
        """Return the resolver handling the repository layout."""
        resolver = self.resolvers.get(repository.type)
        if resolver is None:
            raise UnsupportedRepository(
                f"This kind of repository configuration '{repository.type}' is not supported."
            )
        return resolver

    def resolve(self, dependency: Dependency,
                repositories: Sequence[Repository]) -> ResolvedLocation:
        """Resolve ``dependency`` against ``repositories``.

        Args:
            dependency: requested coordinates, possibly with a version pattern
            repositories: candidate repositories in priority order

        Returns:
            ResolvedLocation of the winning version

        Raises:
            ResolutionFailure: if no repository yields a matching version
            UnsupportedRepository: for a repository kind without a resolver
        """
        self.results = []
        found: Dict[str, ResolvedLocation] = {}

        with Timer() as t:
            for repository in repositories:
                resolver = self.resolver_for(repository)
                try:
                    location, count, error = resolver.resolve(dependency, repository)
                except InstallIOError as exc:
                    logger.warning("%s is not available in %s (%s)", dependency,
                                safe_url(repository.url), exc)
                    self.results.append(ResolutionResult(repository, None, 0, str(exc)))
                    continue

                if location is None:
                    logger.info("%s is not available in %s (%s)", dependency,
                                safe_url(repository.url), error)
                    self.results.append(ResolutionResult(repository, None, count, error))
                    continue

                self.results.append(ResolutionResult(repository, location.version, count))
                found.setdefault(location.version, location)
                if not dependency.has_latest_pattern:
                    break

            if is_debug_enabled(logger):
                logger.debug(
                    "Version resolution finished",
                    extra=extra_context(
                        event="resolve",
                        component="version_service",
                        action="resolve",
                        outcome="found" if found else "not_found",
                        target=str(dependency),
                        duration_ms=t.duration_ms()
                    )
                )

        if not found:
            raise ResolutionFailure(str(dependency), [safe_url(r.url) for r in repositories])

        winner = None
        for version, location in found.items():
            if winner is None or compare_versions(version, winner.version) > 0:
                winner = location
        logger.info("Resolved %s to version %s from %s", dependency, winner.version,
                    safe_url(winner.repository.url))
        return winner

"""Pattern layout resolver based on directory listings.

The repository pattern is cut in front of the ``[revision]`` token; the
resulting URL is listed (HTML index or local directory) and every child
directory is a version candidate.
"""

import logging
from typing import List

from common.errors import UnsupportedRepository
from common.http_client import list_directory
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from ..models import Dependency, Repository, RepositoryType, ResolvedLocation
from ..patterns import version_listing_prefix
from .base import VersionResolver

logger = logging.getLogger(__name__)


class IvyVersionResolver(VersionResolver):
    """Resolver for repositories with a substitution pattern layout."""

    @property
    def repository_type(self) -> RepositoryType:
        """Return the pattern layout."""
        return RepositoryType.IVY

    def listing_url(self, dependency: Dependency, repository: Repository) -> str:
        """URL of the directory holding one subdirectory per version."""
        if not repository.pattern:
            raise UnsupportedRepository(f"Repository '{repository.url}' has no artifact pattern.")
        try:
            prefix = version_listing_prefix(
                repository.pattern,
                organisation=dependency.group,
                module=dependency.module,
                artifact=dependency.module,
            )
        except ValueError as exc:
            raise UnsupportedRepository(str(exc)) from exc
        return repository.base_url + prefix + "/"

    def fetch_candidates(self, dependency: Dependency, repository: Repository) -> List[str]:
        """List the version directories of the module."""
        url = self.listing_url(dependency, repository)
        versions = list_directory(url, context="ivy", credentials=repository.credentials,
                                  config=self.transport)
        if is_debug_enabled(logger):
            logger.debug(
                "Version listing read",
                extra=extra_context(
                    event="parse",
                    component="ivy_resolver",
                    action="fetch_candidates",
                    target=safe_url(url),
                    count=len(versions)
                )
            )
        return versions

    def locate(self, dependency: Dependency, repository: Repository,
               version: str) -> ResolvedLocation:
        """Pattern layouts need nothing beyond the version itself."""
        return ResolvedLocation(
            dependency=dependency.with_version(version),
            repository=repository,
            version=version,
        )

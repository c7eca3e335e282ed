"""Maven layout resolver based on maven-metadata.xml documents."""

import logging
import xml.etree.ElementTree as ET
from typing import List, Optional

from common.errors import InstallIOError
from common.http_client import fetch_text
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from constants import Constants
from ..models import Dependency, Repository, RepositoryType, ResolvedLocation
from .base import VersionResolver

logger = logging.getLogger(__name__)


def module_path(dependency: Dependency, repository: Repository) -> str:
    """Return ``<url>/<group path>/<module>`` without a trailing slash."""
    return f"{repository.base_url}{dependency.group.replace('.', '/')}/{dependency.module}"


def parse_versions(text: str) -> List[str]:
    """Return versions listed in a maven-metadata.xml document in source order.

    Raises:
        InstallIOError: if the document is not well-formed XML.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise InstallIOError(f"Invalid Maven metadata: {exc}") from exc

    versions: List[str] = []
    versions_elem = root.find("versioning/versions")
    if versions_elem is None:
        return versions
    for item in versions_elem.findall("version"):
        if isinstance(item.text, str) and item.text.strip():
            versions.append(item.text.strip())
    return versions


def parse_snapshot_stamp(text: str, version: str) -> Optional[str]:
    """Return ``<base>-<timestamp>-<buildNumber>`` from snapshot metadata.

    None is returned when the document carries no snapshot element.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise InstallIOError(f"Invalid Maven snapshot metadata: {exc}") from exc

    snapshot = root.find("versioning/snapshot")
    if snapshot is None:
        return None
    timestamp = (snapshot.findtext("timestamp") or "").strip()
    build_number = (snapshot.findtext("buildNumber") or "").strip()
    if not timestamp or not build_number:
        return None
    base_version = version[: -len(Constants.SNAPSHOT_SUFFIX)] \
        if version.endswith(Constants.SNAPSHOT_SUFFIX) else version
    return f"{base_version}-{timestamp}-{build_number}"


class MavenVersionResolver(VersionResolver):
    """Resolver for repositories with Maven layout."""

    @property
    def repository_type(self) -> RepositoryType:
        """Return the Maven layout."""
        return RepositoryType.MAVEN

    def fetch_candidates(self, dependency: Dependency, repository: Repository) -> List[str]:
        """Fetch version candidates from the module metadata document."""
        url = f"{module_path(dependency, repository)}/{Constants.MAVEN_METADATA_FILE}"
        text = fetch_text(url, context="maven", credentials=repository.credentials,
                          config=self.transport)
        versions = parse_versions(text)
        if is_debug_enabled(logger):
            logger.debug(
                "Maven metadata parsed",
                extra=extra_context(
                    event="parse",
                    component="maven_resolver",
                    action="fetch_candidates",
                    target=safe_url(url),
                    count=len(versions)
                )
            )
        return versions

    def locate(self, dependency: Dependency, repository: Repository,
               version: str) -> ResolvedLocation:
        """Build the artifact stem, resolving snapshots to their unique build."""
        path = module_path(dependency, repository)
        stem_version = version

        if version.endswith(Constants.SNAPSHOT_SUFFIX):
            url = f"{path}/{version}/{Constants.MAVEN_METADATA_FILE}"
            try:
                text = fetch_text(url, context="maven", credentials=repository.credentials,
                                  config=self.transport)
                stem_version = parse_snapshot_stamp(text, version) or version
            except InstallIOError:
                logger.warning("No snapshot metadata for %s in %s, using the plain version",
                               version, safe_url(url))

        stem = f"{path}/{version}/{dependency.module}-{stem_version}"
        return ResolvedLocation(
            dependency=dependency.with_version(version),
            repository=repository,
            version=version,
            artifact_stem=stem,
        )

"""Reconciliation of one component install root.

The reconciler runs the stages strictly in order: resolve the component
version, fetch and validate the descriptor, plan the operations, materialise
all artifacts, apply the operations and finally clean up undeclared content.
Nothing below the install root is touched before all artifacts are available.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from common.errors import InstallError
from common.http_client import TransportConfig, download
from common.logging_utils import Timer, extra_context, is_debug_enabled
from constants import Constants
from descriptor.loader import fetch_descriptor, parse_descriptor, parse_metadata, validate_metadata
from descriptor.models import ComponentDescriptor, join_path
from versioning.models import Artifact, Dependency, Repository, RepositoryType, ResolvedLocation
from versioning.patterns import substitute
from versioning.service import VersionResolutionService
from .cleanup import CleanupEngine, CleanupReport, declared_targets
from .content_policy import (
    ArchiveSource,
    ArtifactRef,
    ContentPolicy,
    FileSource,
    InstallOperation,
    OperationKind,
)
from .environment import InstallEnvironment
from .filters import ContentFilter
from .links import create_link
from .markers import write_marker
from .sync import SourceEntry, SyncEngine, WorkResult, archive_entries, file_entry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallComponent:
    """A component to install below ``<installDir>/<path>``."""
    dependency: Dependency
    path: str = ""

    @property
    def install_path(self) -> str:
        return join_path(self.path) or self.dependency.module


@dataclass
class ReconcileResult:
    """Outcome of one component reconciliation."""
    component: InstallComponent
    version: str
    is_update: bool
    operations: List[WorkResult] = field(default_factory=list)
    cleanup: CleanupReport = field(default_factory=CleanupReport)

    @property
    def did_work(self) -> bool:
        return any(r.did_work for r in self.operations) or self.cleanup.did_work


class ArtifactProvider(ABC):
    """Makes artifacts available as local files."""

    @abstractmethod
    def fetch(self, ref: ArtifactRef) -> Path:
        """Return a local file holding the artifact.

        Raises:
            InstallIOError: if the artifact can not be fetched.
        """


class RepositoryArtifactProvider(ArtifactProvider):
    """Downloads artifacts from the configured repositories.

    Component artifacts come from the component location; module and library
    artifacts are resolved through the version resolution service once per
    dependency.
    """

    def __init__(self, component: ResolvedLocation, service: VersionResolutionService,
                 repositories: Sequence[Repository], work_dir: Path,
                 transport: Optional[TransportConfig] = None):
        self.component = component
        self.service = service
        self.repositories = list(repositories)
        self.work_dir = Path(work_dir)
        self.transport = transport
        self._locations: Dict[Dependency, ResolvedLocation] = {}
        self._files: Dict[ArtifactRef, Path] = {}

    def location_for(self, dependency: Optional[Dependency]) -> ResolvedLocation:
        if dependency is None:
            return self.component
        if dependency not in self._locations:
            self._locations[dependency] = self.service.resolve(dependency, self.repositories)
        return self._locations[dependency]

    @staticmethod
    def url_for(location: ResolvedLocation, artifact: Artifact) -> str:
        """Artifact URL; module descriptors use the layout specific descriptor file."""
        if artifact.type != "ivy":
            return location.artifact_url(artifact)
        if location.repository.type == RepositoryType.MAVEN:
            return f"{location.artifact_stem}.pom"
        path = substitute(
            Constants.IVY_DESCRIPTOR_PATTERN,
            organisation=location.dependency.group,
            module=location.dependency.module,
            revision=location.version,
            type=artifact.type,
        )
        return location.repository.base_url + path

    def fetch(self, ref: ArtifactRef) -> Path:
        cached = self._files.get(ref)
        if cached is not None:
            return cached
        location = self.location_for(ref.dependency)
        url = self.url_for(location, ref.artifact)
        dependency = location.dependency
        target = self.work_dir / dependency.group / dependency.module / location.version \
            / url.rstrip("/").rsplit("/", 1)[-1]
        path = download(url, target, context="artifact",
                        credentials=location.repository.credentials, config=self.transport)
        self._files[ref] = path
        return path


class ComponentReconciler:
    """Installs or updates components below an install directory."""

    def __init__(self, install_dir: Path, admin_dir: Path, repositories: Sequence[Repository],
                 environment: InstallEnvironment, *,
                 backup_dir: Optional[Path] = None,
                 placeholders: Optional[Dict[str, str]] = None,
                 filters: Optional[Sequence[ContentFilter]] = None,
                 transport: Optional[TransportConfig] = None,
                 service: Optional[VersionResolutionService] = None,
                 provider: Optional[ArtifactProvider] = None):
        self.install_dir = Path(install_dir)
        self.admin_dir = Path(admin_dir)
        self.backup_dir = Path(backup_dir) if backup_dir else \
            self.admin_dir / Constants.DEFAULT_BACKUP_DIR_NAME
        self.repositories = list(repositories)
        self.environment = environment
        self.placeholders = dict(placeholders or {})
        self.filters = list(filters or [])
        self.transport = transport or TransportConfig()
        self.service = service or VersionResolutionService(self.transport)
        self.provider = provider

    def install_root(self, component: InstallComponent) -> Path:
        return self.install_dir / component.install_path

    @staticmethod
    def installed_descriptor(root: Path, descriptor: ComponentDescriptor, module: str) -> Path:
        """Location of the descriptor copy written by a previous run."""
        return root / join_path(descriptor.descriptor_path) / \
            f"{module}.{Constants.DESCRIPTOR_EXTENSION}"

    def reconcile(self, component: InstallComponent,
                  is_update: Optional[bool] = None) -> ReconcileResult:
        """Reconcile one component.

        Args:
            component: component coordinates and install path
            is_update: force update or fresh install; detected when None

        Returns:
            ReconcileResult with per operation work and the cleanup report

        Raises:
            InstallError: any subclass; nothing is written for resolution,
                descriptor and download failures
        """
        root = self.install_root(component)
        dependency = component.dependency
        with Timer() as t:
            location = self.service.resolve(dependency, self.repositories)
            work_dir = self.admin_dir / "work" / component.install_path
            descriptor_file = fetch_descriptor(location, work_dir, self.transport)
            validate_metadata(parse_metadata(descriptor_file), str(location.dependency))
            descriptor = parse_descriptor(descriptor_file)

            installed = self.installed_descriptor(root, descriptor, dependency.module)
            if is_update is None:
                is_update = installed.is_file()
            logger.info("%s %s in '%s'", "Update" if is_update else "Install",
                        location.dependency, root)

            operations = ContentPolicy(self.environment, self.placeholders, self.filters) \
                .plan(descriptor, is_update)
            provider = self.provider or RepositoryArtifactProvider(
                location, self.service, self.repositories, self.admin_dir / "artifacts",
                self.transport)
            prepared = [(op, self._entries(op, provider)) for op in operations]

            result = ReconcileResult(component, location.version, is_update)
            engine = SyncEngine(root)
            for op, entries in prepared:
                result.operations.append(self._apply(engine, root, op, entries))

            result.operations.append(engine.sync(
                join_path(descriptor.descriptor_path),
                [file_entry(descriptor_file, installed.name)],
                name="descriptor",
            ))

            cleaner = CleanupEngine(self.backup_dir / component.install_path)
            result.cleanup = cleaner.cleanup(root, declared_targets(descriptor))

        if is_debug_enabled(logger):
            logger.debug(
                "Component reconciled",
                extra=extra_context(
                    event="reconcile",
                    component="reconciler",
                    action="update" if is_update else "install",
                    outcome="changed" if result.did_work else "unchanged",
                    target=str(root),
                    duration_ms=t.duration_ms()
                )
            )
        return result

    @staticmethod
    def _entries(op: InstallOperation, provider: ArtifactProvider) -> List[SourceEntry]:
        entries: List[SourceEntry] = []
        for source in op.sources:
            if isinstance(source, ArchiveSource):
                entries.extend(archive_entries(provider.fetch(source.ref),
                                               strip_root=source.strip_root, skip=source.skip))
            elif isinstance(source, FileSource):
                entries.append(file_entry(provider.fetch(source.ref), source.path))
        return entries

    @staticmethod
    def _apply(engine: SyncEngine, root: Path, op: InstallOperation,
               entries: List[SourceEntry]) -> WorkResult:
        if op.kind == OperationKind.LINK:
            return create_link(root, op.target, op.link_target)

        work = engine.sync(op.target, entries, excludes=op.excludes, preserve=op.preserve,
                           mode=op.mode, nested=op.nested, filters=op.filters, name=str(op))
        if op.write_marker:
            work.marker_changed = write_marker(root / op.target if op.target else root,
                                               op.content_type)
        if work.did_work:
            logger.info("%s: %d written, %d deleted", op, len(work.written), len(work.deleted))
        else:
            logger.debug("%s: up to date", op)
        return work


def reconcile_all(reconciler: ComponentReconciler, components: Sequence[InstallComponent],
                  is_update: Optional[bool] = None) -> List[Tuple[InstallComponent, object]]:
    """Reconcile components independently.

    Returns:
        (component, ReconcileResult or the InstallError raised) per component
    """
    outcomes: List[Tuple[InstallComponent, object]] = []
    for component in components:
        try:
            outcomes.append((component, reconciler.reconcile(component, is_update)))
        except InstallError as exc:
            logger.error("Installation of %s failed: %s", component.dependency, exc)
            outcomes.append((component, exc))
    return outcomes

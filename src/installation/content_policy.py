"""Planning of install operations from a component descriptor.

The policy turns the declared items into an ordered list of declarative
operations. It never touches the filesystem; the only input besides the
descriptor is the update flag and the injected environment.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from descriptor.models import (
    ComponentDescriptor,
    ContentType,
    FileItem,
    InstallItem,
    join_path,
)
from versioning.models import Artifact, Dependency
from .environment import InstallEnvironment, OSType, is_applicable
from .filters import ContentFilter, FilterChain, placeholder_filter, properties_filters
from .patterns import PatternSet, merge_excludes, merge_preserve

logger = logging.getLogger(__name__)

MODULE_DESCRIPTOR = Artifact("ivy", "ivy", "xml")
MODULE_DESCRIPTOR_FILE = "ivy.xml"


class SyncMode(Enum):
    """How an operation treats existing destination content.

    MIRROR writes the sources and deletes everything else that is not
    preserved. OVERWRITE writes the sources and deletes nothing.
    KEEP_EXISTING only adds files that do not exist yet.
    """
    MIRROR = "mirror"
    OVERWRITE = "overwrite"
    KEEP_EXISTING = "keep_existing"


class OperationKind(Enum):
    DIRECTORY = "directory"
    MODULE = "module"
    LIBRARIES = "libraries"
    CONTAINER = "container"
    FILES = "files"
    LINK = "link"


@dataclass(frozen=True)
class ArtifactRef:
    """An artifact to materialise; without dependency it belongs to the component."""
    artifact: Artifact
    dependency: Optional[Dependency] = None

    def __str__(self) -> str:
        owner = str(self.dependency) if self.dependency else "component"
        suffix = f"-{self.artifact.classifier}" if self.artifact.classifier else ""
        return f"{owner}:{self.artifact.name}{suffix}.{self.artifact.ext}"


@dataclass
class ArchiveSource:
    """A zip archive unpacked into the operation target.

    ``skip`` holds destination relative paths that are provided by loose
    files instead.
    """
    ref: ArtifactRef
    strip_root: bool = False
    skip: FrozenSet[str] = frozenset()


@dataclass
class FileSource:
    """A single file copied to ``path`` relative to the operation target."""
    ref: ArtifactRef
    path: str


@dataclass
class InstallOperation:
    """One declarative write against a directory below the install root."""
    kind: OperationKind
    name: str
    target: str
    content_type: ContentType = ContentType.IMMUTABLE
    mode: SyncMode = SyncMode.MIRROR
    sources: List[object] = field(default_factory=list)
    excludes: PatternSet = field(default_factory=PatternSet)
    preserve: PatternSet = field(default_factory=PatternSet)
    nested: FrozenSet[str] = frozenset()
    filters: FilterChain = field(default_factory=FilterChain)
    write_marker: bool = False
    link_target: str = ""

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.name} -> '{self.target}'"

    def contains(self, path: str) -> bool:
        """True if ``path`` (relative to the install root) lies below the target."""
        if not self.target:
            return bool(path)
        return path.startswith(self.target + "/")

    def relative(self, path: str) -> str:
        return path[len(self.target) + 1:] if self.target else path


def _label(item) -> str:
    for attr in ("name", "key", "target_path", "dependency"):
        value = getattr(item, attr, None)
        if value:
            return f"{type(item).__name__}({value})"
    return type(item).__name__


def sync_mode_for(content_type: ContentType, is_update: bool) -> SyncMode:
    """Sync mode of a content type.

    Fresh installs mirror. Updates mirror IMMUTABLE content only, never
    overwrite DATA and overwrite other content without deleting.
    """
    if not is_update or content_type == ContentType.IMMUTABLE:
        return SyncMode.MIRROR
    if content_type == ContentType.DATA:
        return SyncMode.KEEP_EXISTING
    return SyncMode.OVERWRITE


class ContentPolicy:
    """Decides for every declared item whether and how it is written."""

    def __init__(self, environment: InstallEnvironment,
                 placeholders: Optional[Mapping[str, str]] = None,
                 filters: Optional[Sequence[ContentFilter]] = None):
        self.environment = environment
        self.placeholders = dict(placeholders or {})
        self.filters = list(filters or [])

    def applies(self, item, is_update: bool) -> bool:
        """Applicability and update filter of one item."""
        if not is_applicable(item, self.environment):
            logger.debug("Item %s skipped: not applicable to %s %s", _label(item),
                         self.environment.os_type.value, sorted(self.environment.types))
            return False
        if is_update and not item.updatable:
            logger.debug("Item %s skipped: not updatable", _label(item))
            return False
        return True

    def plan(self, descriptor: ComponentDescriptor, is_update: bool) -> List[InstallOperation]:
        """Build the ordered operations for one reconciliation pass.

        Order: directories, modules, libraries, containers, loose files, links.
        """
        directories = [self._directory_op(d) for d in descriptor.directories
                       if self.applies(d, is_update)]
        modules = [self._module_op(descriptor, m, is_update) for m in descriptor.modules
                   if self.applies(m, is_update)]
        libraries = self._libraries_op(descriptor, is_update)
        containers = [self._container_op(descriptor, c, is_update) for c in descriptor.containers
                      if self.applies(c, is_update)]

        managed = modules + containers
        loose = self._apply_file_items(descriptor, managed, is_update)
        links = [self._link_op(link) for link in descriptor.links if self.applies(link, is_update)]

        operations = directories + modules + ([libraries] if libraries else []) + containers \
            + loose + links
        self._attach_filters(descriptor, operations, is_update)
        self._protect_nested(operations)

        for op in operations:
            logger.debug("Planned %s mode=%s content=%s", op, op.mode.value, op.content_type.value)
        return operations

    def _directory_op(self, item) -> InstallOperation:
        return InstallOperation(
            kind=OperationKind.DIRECTORY,
            name=item.target_path,
            target=join_path(item.target_path),
            content_type=item.content_type,
            mode=SyncMode.OVERWRITE,
            write_marker=True,
        )

    def _item_op(self, kind: OperationKind, name: str, target: str, descriptor: ComponentDescriptor,
                 item: InstallItem, is_update: bool) -> InstallOperation:
        return InstallOperation(
            kind=kind,
            name=name,
            target=target,
            content_type=item.content_type,
            mode=sync_mode_for(item.content_type, is_update),
            excludes=merge_excludes(descriptor.excludes, item, is_update),
            preserve=merge_preserve(descriptor.preserve, item.preserve),
            write_marker=True,
        )

    def _module_op(self, descriptor: ComponentDescriptor, module, is_update: bool) -> InstallOperation:
        op = self._item_op(OperationKind.MODULE, module.name, descriptor.module_target(module),
                           descriptor, module, is_update)
        dependency = module.dependency
        for artifact in module.artifacts:
            ref = ArtifactRef(artifact, dependency)
            if artifact.ext == "zip":
                if artifact.classifier and \
                        OSType.from_string(artifact.classifier) != self.environment.os_type:
                    logger.debug("Package %s skipped for %s", ref, self.environment.os_type.value)
                    continue
                op.sources.append(ArchiveSource(ref, strip_root=module.target_included))
            else:
                suffix = f"-{artifact.classifier}" if artifact.classifier else ""
                file_name = f"{artifact.name}{suffix}.{artifact.ext}"
                op.sources.append(FileSource(ref, join_path(module.jar_path, file_name)))
        op.sources.append(FileSource(ArtifactRef(MODULE_DESCRIPTOR, dependency),
                                     join_path(module.descriptor_path, MODULE_DESCRIPTOR_FILE)))
        return op

    def _container_op(self, descriptor: ComponentDescriptor, container,
                      is_update: bool) -> InstallOperation:
        op = self._item_op(OperationKind.CONTAINER, container.name,
                           descriptor.container_target(container), descriptor, container, is_update)
        artifact = Artifact(container.name, container.item_type or "container", "zip",
                            container.classifier)
        op.sources.append(ArchiveSource(ArtifactRef(artifact), strip_root=container.target_included))
        return op

    def _libraries_op(self, descriptor: ComponentDescriptor,
                      is_update: bool) -> Optional[InstallOperation]:
        """Libraries copied into the libs directory.

        Libraries that are not updatable stay in place on update instead of
        being removed by the mirror. A libs directory at the install root is
        never mirrored.
        """
        libs = [lib for lib in descriptor.libs if is_applicable(lib, self.environment)]
        if not libs:
            return None
        target = join_path(descriptor.libs_path)
        op = InstallOperation(
            kind=OperationKind.LIBRARIES,
            name="libs",
            target=target,
            content_type=ContentType.IMMUTABLE,
            mode=SyncMode.MIRROR if target else SyncMode.OVERWRITE,
        )
        kept = set()
        for lib in libs:
            file_name = f"{lib.target_name}.{lib.ext}"
            if is_update and not lib.updatable:
                logger.debug("Library %s kept: not updatable", file_name)
                kept.add(file_name)
                continue
            artifact = Artifact(lib.dependency.module, lib.ext, lib.ext)
            op.sources.append(FileSource(ArtifactRef(artifact, lib.dependency), file_name))
        op.nested = frozenset(kept)
        return op

    def _apply_file_items(self, descriptor: ComponentDescriptor, managed: List[InstallOperation],
                          is_update: bool) -> List[InstallOperation]:
        """Attach loose files to the directory operation they fall under.

        A loose file replaces the archive entry at the same path. On update a
        file that is not updatable or holds DATA is neither written nor
        removed by its owner. Files below no managed directory are grouped
        into copy operations per directory and content type.
        """
        grouped: Dict[Tuple[str, ContentType], InstallOperation] = {}
        for item in descriptor.files:
            if not is_applicable(item, self.environment):
                continue
            destination = item.destination
            owner = self._owner(managed, destination)
            ref = ArtifactRef(self._file_artifact(item))

            if owner is not None:
                rel = owner.relative(destination)
                owner.sources = [
                    replace(s, skip=s.skip | {rel}) if isinstance(s, ArchiveSource) else s
                    for s in owner.sources
                ]
                if is_update and (not item.updatable or item.content_type == ContentType.DATA):
                    logger.debug("File %s not replaced on update", destination)
                    owner.nested = owner.nested | {rel}
                    continue
                owner.sources.append(FileSource(ref, rel))
                continue

            if is_update and not item.updatable:
                continue
            target = join_path(item.target_path)
            key = (target, item.content_type)
            op = grouped.get(key)
            if op is None:
                op = InstallOperation(
                    kind=OperationKind.FILES,
                    name=target or "/",
                    target=target,
                    content_type=item.content_type,
                    mode=SyncMode.KEEP_EXISTING
                    if is_update and item.content_type == ContentType.DATA else SyncMode.OVERWRITE,
                )
                grouped[key] = op
            op.sources.append(FileSource(ref, item.file_name))
        return list(grouped.values())

    @staticmethod
    def _file_artifact(item: FileItem) -> Artifact:
        return Artifact(item.name, item.extension or "file", item.extension, item.classifier)

    @staticmethod
    def _owner(operations: Iterable[InstallOperation], path: str) -> Optional[InstallOperation]:
        owners = [op for op in operations if op.contains(path)]
        if not owners:
            return None
        return max(owners, key=lambda op: len(op.target))

    def _link_op(self, link) -> InstallOperation:
        return InstallOperation(
            kind=OperationKind.LINK,
            name=link.name,
            target=join_path(link.name),
            content_type=link.content_type,
            mode=SyncMode.OVERWRITE,
            link_target=link.target_path,
        )

    def _attach_filters(self, descriptor: ComponentDescriptor,
                        operations: List[InstallOperation], is_update: bool) -> None:
        props = properties_filters([p for p in descriptor.properties if self.applies(p, is_update)])
        placeholders = placeholder_filter(self.placeholders) if self.placeholders else None
        for op in operations:
            if op.kind in (OperationKind.DIRECTORY, OperationKind.LINK):
                continue
            chain = list(props) + self.filters
            if placeholders is not None and op.content_type == ContentType.CONFIGURATION:
                chain.insert(0, placeholders)
            op.filters = FilterChain(chain)

    @staticmethod
    def _protect_nested(operations: List[InstallOperation]) -> None:
        """Keep a mirror from deleting destinations owned by other operations."""
        for outer in operations:
            inner = {outer.relative(op.target) for op in operations
                     if op is not outer and outer.contains(op.target)}
            if inner:
                outer.nested = outer.nested | frozenset(inner)

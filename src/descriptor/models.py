"""Data model of a parsed component descriptor."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set

from versioning.models import Artifact, Dependency


class ContentType(Enum):
    """Classification of installed content.

    IMMUTABLE content is replaced freely, DATA is never silently replaced,
    CONFIGURATION is adapted through filters and UNSPECIFIED is handled like
    DATA by the cleanup.
    """
    IMMUTABLE = "IMMUTABLE"
    DATA = "DATA"
    CONFIGURATION = "CONFIGURATION"
    UNSPECIFIED = "UNSPECIFIED"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "ContentType":
        """Map a descriptor or marker string to a content type.

        Blank or unknown values map to UNSPECIFIED.
        """
        key = (value or "").strip().upper()
        for item in cls:
            if item.value == key:
                return item
        return cls.UNSPECIFIED

    @property
    def requires_backup(self) -> bool:
        """True if orphaned content of this type must be backed up."""
        return self in (ContentType.DATA, ContentType.UNSPECIFIED)


@dataclass(frozen=True)
class PatternSpec:
    """Ant-style include and exclude pattern lists."""
    includes: Set[str] = field(default_factory=frozenset)
    excludes: Set[str] = field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        """True when no pattern is configured."""
        return not self.includes and not self.excludes


@dataclass
class DeploymentItem:
    """Attributes shared by all declared items."""
    classifier: str = ""
    types: Set[str] = field(default_factory=set)
    updatable: bool = True
    content_type: ContentType = ContentType.UNSPECIFIED


@dataclass
class InstallItem(DeploymentItem):
    """A declared item that owns a directory below the install root."""
    target_path: str = ""
    target_included: bool = False
    excludes: Set[str] = field(default_factory=set)
    excludes_from_update: Set[str] = field(default_factory=set)
    preserve: PatternSpec = field(default_factory=PatternSpec)


@dataclass
class Module(InstallItem):
    """An independently versioned module of the component.

    ``artifacts`` lists the files to fetch; jars go below ``jar_path``, zip
    packages are unpacked into the module directory and the module
    descriptor goes below ``descriptor_path``.
    """
    name: str = ""
    dependency: Optional[Dependency] = None
    artifacts: List[Artifact] = field(default_factory=list)
    jar_path: str = ""
    descriptor_path: str = ""


@dataclass
class FileContainer(InstallItem):
    """A zip package published with the component itself."""
    name: str = ""
    item_type: str = ""


@dataclass
class Library(DeploymentItem):
    """A library installed flat into the component libs directory."""
    dependency: Optional[Dependency] = None
    target_name: str = ""
    ext: str = "jar"


@dataclass
class DirectoryItem(DeploymentItem):
    """An empty directory created with a content marker."""
    target_path: str = ""


@dataclass
class LinkItem(DeploymentItem):
    """A symbolic link ``name`` pointing at ``target_path``."""
    name: str = ""
    target_path: str = ""


@dataclass
class PropertyItem(DeploymentItem):
    """A property set in every installed file matching ``pattern``."""
    key: str = ""
    value: str = ""
    pattern: str = ""


@dataclass
class FileItem(DeploymentItem):
    """A loose file published with the component.

    It is installed as ``<target_path>/<name>.<extension>``.
    """
    name: str = ""
    extension: str = ""
    target_path: str = ""

    @property
    def file_name(self) -> str:
        """Installed file name."""
        return f"{self.name}.{self.extension}" if self.extension else self.name

    @property
    def destination(self) -> str:
        """Destination path relative to the install root."""
        return join_path(self.target_path, self.file_name)


@dataclass
class ComponentDescriptor:
    """Parsed declaration of one component."""
    display_name: str = ""
    descriptor_path: str = "descriptor"
    modules_path: str = "modules"
    containers_path: str = ""
    libs_path: str = "libs"
    excludes: Set[str] = field(default_factory=set)
    preserve: PatternSpec = field(default_factory=PatternSpec)
    modules: List[Module] = field(default_factory=list)
    containers: List[FileContainer] = field(default_factory=list)
    libs: List[Library] = field(default_factory=list)
    directories: List[DirectoryItem] = field(default_factory=list)
    links: List[LinkItem] = field(default_factory=list)
    properties: List[PropertyItem] = field(default_factory=list)
    files: List[FileItem] = field(default_factory=list)

    def module_target(self, module: Module) -> str:
        """Destination of a module relative to the install root."""
        return join_path(self.modules_path, module.target_path)

    def container_target(self, container: FileContainer) -> str:
        """Destination of a container relative to the install root."""
        return join_path(self.containers_path, container.target_path)


@dataclass(frozen=True)
class DescriptorMetadata:
    """Header of a descriptor document."""
    format_version: str
    group: str = ""
    module: str = ""
    version: str = ""


def join_path(*parts: str) -> str:
    """Join relative path segments with ``/`` skipping blanks."""
    cleaned = [p.strip("/") for p in parts if p and p.strip("/")]
    return "/".join(cleaned)

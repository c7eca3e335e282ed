"""Loading of component descriptor documents.

A descriptor is a YAML (or JSON) document with a ``metadata`` header and a
``component`` body::

    metadata:
      formatVersion: "1.0"
      group: com.example
      module: shop
      version: 1.2.0
    component:
      modulesPath: modules
      modules:
        - name: app
          dependency: com.example:app:1.2.0
          targetPath: app
          contentType: IMMUTABLE
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from common.errors import DescriptorError, FormatMismatch
from common.http_client import TransportConfig, download
from constants import Constants
from versioning.models import Artifact, ResolvedLocation
from versioning.parser import parse_coordinate
from .models import (
    ComponentDescriptor,
    ContentType,
    DescriptorMetadata,
    DirectoryItem,
    FileContainer,
    FileItem,
    Library,
    LinkItem,
    Module,
    PatternSpec,
    PropertyItem,
)

logger = logging.getLogger(__name__)


def _read_document(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except OSError as exc:
        raise DescriptorError(f"Descriptor '{path}' is not readable: {exc}") from exc
    except yaml.YAMLError as exc:
        raise DescriptorError(f"Descriptor '{path}' is not a valid document: {exc}") from exc
    if not isinstance(data, dict):
        raise DescriptorError(f"Descriptor '{path}' does not contain a mapping.")
    return data


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise DescriptorError(f"Section '{key}' must be a mapping.")
    return value


def _items(data: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    value = data.get(key) or []
    if not isinstance(value, list) or not all(isinstance(v, dict) for v in value):
        raise DescriptorError(f"Section '{key}' must be a list of mappings.")
    return value


def _str_set(value: Any) -> set:
    if value is None:
        return set()
    if isinstance(value, str):
        return {value}
    if isinstance(value, (list, tuple, set)):
        return {str(v) for v in value if str(v).strip()}
    raise DescriptorError(f"Expected a list of strings, got '{value}'.")


def _pattern_spec(value: Any) -> PatternSpec:
    if not value:
        return PatternSpec()
    if not isinstance(value, dict):
        raise DescriptorError(f"Preserve configuration '{value}' must be a mapping.")
    return PatternSpec(
        includes=frozenset(_str_set(value.get("includes"))),
        excludes=frozenset(_str_set(value.get("excludes"))),
    )


def _common(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "classifier": str(data.get("classifier") or ""),
        "types": _str_set(data.get("types")),
        "updatable": bool(data.get("updatable", True)),
        "content_type": ContentType.from_string(data.get("contentType")),
    }


def _install_common(data: Dict[str, Any]) -> Dict[str, Any]:
    values = _common(data)
    values.update({
        "target_path": str(data.get("targetPath") or ""),
        "target_included": bool(data.get("targetIncluded", False)),
        "excludes": _str_set(data.get("excludes")),
        "excludes_from_update": _str_set(data.get("excludesFromUpdate")),
        "preserve": _pattern_spec(data.get("preserve")),
    })
    return values


def _dependency(data: Dict[str, Any], owner: str):
    token = data.get("dependency")
    if not token:
        raise DescriptorError(f"{owner} has no dependency.")
    try:
        return parse_coordinate(str(token))
    except ValueError as exc:
        raise DescriptorError(f"{owner}: {exc}") from exc


def _artifact(data: Dict[str, Any], default_name: str) -> Artifact:
    ext = str(data.get("ext") or data.get("extension") or "jar")
    return Artifact(
        name=str(data.get("name") or default_name),
        type=str(data.get("type") or ext),
        ext=ext,
        classifier=str(data.get("classifier") or ""),
    )


def _module(data: Dict[str, Any]) -> Module:
    name = str(data.get("name") or "")
    dependency = _dependency(data, f"Module '{name}'")
    artifacts = [_artifact(a, dependency.module) for a in _items(data, "artifacts")]
    if not artifacts:
        artifacts = [Artifact(dependency.module, "jar", "jar")]
    values = _install_common(data)
    if not values["target_path"]:
        values["target_path"] = name or dependency.module
    return Module(
        name=name or dependency.module,
        dependency=dependency,
        artifacts=artifacts,
        jar_path=str(data.get("jarPath") or Constants.DEFAULT_JAR_PATH),
        descriptor_path=str(data.get("descriptorPath") or ""),
        **values,
    )


def _container(data: Dict[str, Any]) -> FileContainer:
    name = str(data.get("name") or "")
    if not name:
        raise DescriptorError("File container without name.")
    values = _install_common(data)
    if not values["target_path"]:
        values["target_path"] = name
    return FileContainer(name=name, item_type=str(data.get("itemType") or ""), **values)


def _library(data: Dict[str, Any]) -> Library:
    dependency = _dependency(data, "Library")
    return Library(
        dependency=dependency,
        target_name=str(data.get("targetName") or f"{dependency.group}_{dependency.module}"),
        ext=str(data.get("ext") or "jar"),
        **_common(data),
    )


def _directory(data: Dict[str, Any]) -> DirectoryItem:
    target = str(data.get("targetPath") or "")
    if not target:
        raise DescriptorError("Directory item without targetPath.")
    return DirectoryItem(target_path=target, **_common(data))


def _link(data: Dict[str, Any]) -> LinkItem:
    name = str(data.get("name") or "")
    target = str(data.get("targetPath") or "")
    if not name or not target:
        raise DescriptorError("Link items need a name and a targetPath.")
    return LinkItem(name=name, target_path=target, **_common(data))


def _property(data: Dict[str, Any]) -> PropertyItem:
    key = str(data.get("key") or "")
    if not key:
        raise DescriptorError("Property item without key.")
    return PropertyItem(
        key=key,
        value="" if data.get("value") is None else str(data.get("value")),
        pattern=str(data.get("pattern") or "**/*.properties"),
        **_common(data),
    )


def _file(data: Dict[str, Any]) -> FileItem:
    name = str(data.get("name") or "")
    if not name:
        raise DescriptorError("File item without name.")
    return FileItem(
        name=name,
        extension=str(data.get("extension") or ""),
        target_path=str(data.get("targetPath") or ""),
        **_common(data),
    )


def parse_metadata(path: Path) -> DescriptorMetadata:
    """Read the metadata header of a descriptor document."""
    meta = _section(_read_document(Path(path)), "metadata")
    version = meta.get("formatVersion")
    if version is None:
        raise DescriptorError(f"Descriptor '{path}' has no format version.")
    return DescriptorMetadata(
        format_version=str(version),
        group=str(meta.get("group") or ""),
        module=str(meta.get("module") or ""),
        version=str(meta.get("version") or ""),
    )


def validate_metadata(metadata: DescriptorMetadata, name: str = "") -> None:
    """Check the format version of a descriptor.

    Raises:
        FormatMismatch: if the version differs from the supported one.
    """
    if metadata.format_version != Constants.DESCRIPTOR_FORMAT_VERSION:
        raise FormatMismatch(name or f"{metadata.group}:{metadata.module}:{metadata.version}",
                             metadata.format_version, Constants.DESCRIPTOR_FORMAT_VERSION)


def parse_descriptor(path: Path) -> ComponentDescriptor:
    """Parse a descriptor document into a ComponentDescriptor.

    Raises:
        DescriptorError: for malformed documents.
    """
    comp = _section(_read_document(Path(path)), "component")
    if comp.get("libsPath") is not None and not str(comp.get("libsPath")).strip("/ "):
        raise DescriptorError(f"Descriptor '{path}' declares a blank libsPath.")
    try:
        descriptor = ComponentDescriptor(
            display_name=str(comp.get("displayName") or ""),
            descriptor_path=str(comp.get("descriptorPath") or "descriptor"),
            modules_path=str(comp.get("modulesPath") if comp.get("modulesPath") is not None
                             else "modules"),
            containers_path=str(comp.get("containersPath") or ""),
            libs_path=str(comp.get("libsPath") if comp.get("libsPath") is not None else "libs"),
            excludes=_str_set(comp.get("excludes")),
            preserve=_pattern_spec(comp.get("preserve")),
            modules=[_module(m) for m in _items(comp, "modules")],
            containers=[_container(c) for c in _items(comp, "containers")],
            libs=[_library(lib) for lib in _items(comp, "libs")],
            directories=[_directory(d) for d in _items(comp, "directories")],
            links=[_link(link) for link in _items(comp, "links")],
            properties=[_property(p) for p in _items(comp, "properties")],
            files=[_file(f) for f in _items(comp, "files")],
        )
    except TypeError as exc:
        raise DescriptorError(f"Descriptor '{path}' is malformed: {exc}") from exc

    logger.debug("Descriptor %s parsed: %d modules, %d containers, %d libs",
                 path, len(descriptor.modules), len(descriptor.containers), len(descriptor.libs))
    return descriptor


def fetch_descriptor(location: ResolvedLocation, target_dir: Path,
                     config: Optional[TransportConfig] = None) -> Path:
    """Download the descriptor of a resolved component into ``target_dir``."""
    url = location.descriptor_url()
    dependency = location.dependency
    target = Path(target_dir) / f"{dependency.module}-{location.version}.{Constants.DESCRIPTOR_EXTENSION}"
    logger.info("Load descriptor %s from %s", dependency, location.repository)
    return download(url, target, context="descriptor",
                    credentials=location.repository.credentials, config=config)

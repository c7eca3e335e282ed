"""Removal of undeclared content below a component install root.

The declared target paths form a tree. The install root is walked in
lock-step with it; entries without a declared counterpart are orphans.
Orphan directories whose content markers indicate data are moved to the
backup directory, everything else is deleted. The content of target nodes is
owned by the sync operations and not inspected.
"""
from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from common.errors import InstallIOError
from constants import Constants
from descriptor.models import ComponentDescriptor, join_path
from .markers import requires_backup
from .sync import remove_tree

logger = logging.getLogger(__name__)


class TreeNode:
    """Node of the declared path tree."""

    def __init__(self, name: str):
        self.name = name
        self.target = False
        self.children: Dict[str, "TreeNode"] = {}

    def __repr__(self) -> str:
        return f"TreeNode({self.name!r}, target={self.target}, children={sorted(self.children)})"

    def add_path(self, path: str) -> "TreeNode":
        """Add all segments of ``path`` and return the deepest node."""
        node = self
        for segment in path.replace("\\", "/").split("/"):
            if segment and segment != ".":
                node = node.children.setdefault(segment, TreeNode(segment))
        return node

    def get_child(self, name: str) -> Optional["TreeNode"]:
        return self.children.get(name)

    @classmethod
    def from_targets(cls, name: str, targets: Iterable[str]) -> "TreeNode":
        """Build a tree marking the deepest node of every non-blank path."""
        root = cls(name)
        for path in targets:
            if join_path(path):
                root.add_path(path).target = True
        return root


def declared_targets(descriptor: ComponentDescriptor) -> List[str]:
    """All paths a descriptor owns, independent of item applicability."""
    targets = [
        descriptor.descriptor_path,
        descriptor.libs_path,
    ]
    targets.extend(descriptor.module_target(m) for m in descriptor.modules)
    targets.extend(descriptor.container_target(c) for c in descriptor.containers)
    targets.extend(d.target_path for d in descriptor.directories)
    targets.extend(link.name for link in descriptor.links)
    targets.extend(f.destination for f in descriptor.files)
    return [join_path(t) for t in targets if join_path(t)]


@dataclass
class CleanupReport:
    """Paths removed or moved by a cleanup pass, relative to the install root."""
    deleted: List[str] = field(default_factory=list)
    backed_up: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def did_work(self) -> bool:
        return bool(self.deleted or self.backed_up)


class CleanupEngine:
    """Deletes or backs up orphaned entries of an install root."""

    def __init__(self, backup_dir: Path, timestamp: Optional[datetime] = None):
        self.backup_dir = Path(backup_dir)
        self.timestamp = timestamp or datetime.now()

    def cleanup(self, install_root: Path, target_paths: Iterable[str]) -> CleanupReport:
        """Remove everything below ``install_root`` that no target path declares.

        Args:
            install_root: root directory of the component
            target_paths: declared paths relative to the install root

        Returns:
            CleanupReport listing deleted and backed up paths
        """
        install_root = Path(install_root)
        report = CleanupReport()
        if not install_root.is_dir():
            return report
        tree = TreeNode.from_targets(install_root.name, target_paths)
        self._check(tree, install_root, "", report)
        return report

    def _check(self, node: TreeNode, directory: Path, rel_dir: str, report: CleanupReport) -> None:
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            raise InstallIOError("Directory is not readable", path=str(directory)) from exc

        for entry in entries:
            rel = join_path(rel_dir, entry.name)
            child = node.get_child(entry.name)
            if child is not None:
                if not child.target and entry.is_dir() and not entry.is_symlink():
                    self._check(child, entry, rel, report)
                continue
            if entry.name == Constants.CONTENT_MARKER_FILE or self._is_backup_dir(entry):
                continue
            self._handle_orphan(entry, rel, report)

    def _is_backup_dir(self, path: Path) -> bool:
        try:
            return path.resolve() == self.backup_dir.resolve()
        except OSError:
            return False

    def _handle_orphan(self, path: Path, rel: str, report: CleanupReport) -> None:
        if path.is_dir() and not path.is_symlink() and requires_backup(path):
            target = self._backup_target(rel)
            logger.debug("Directory '%s' will be moved to backup '%s'", path, target)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.move(str(path), str(target))
            except OSError as exc:
                raise InstallIOError("Directory can not be moved to backup", path=str(path)) from exc
            report.backed_up.append((rel, str(target)))
            logger.info("Directory '%s' moved to backup '%s'", path, target)
            return

        remove_tree(path)
        report.deleted.append(rel)
        logger.info("'%s' deleted.", path)

    def _backup_target(self, rel: str) -> Path:
        target = self.backup_dir / rel
        if target.exists():
            target = target.with_name(f"{target.name}.{self.timestamp.strftime('%Y%m%d%H%M%S')}")
        return target

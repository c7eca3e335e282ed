"""Synchronisation of a destination directory with a set of source entries.

All entries of one pass are collected before anything is written, so two
sources claiming the same destination path fail the pass without a partial
write. Unchanged files keep their modification time; written files get the
timestamp of the reconciliation run.
"""
from __future__ import annotations

import logging
import os
import shutil
import time
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional

from common.errors import InstallIOError, PathConflict
from common.logging_utils import Timer, extra_context, is_debug_enabled
from constants import Constants
from descriptor.models import join_path
from .content_policy import SyncMode
from .filters import FilterChain
from .patterns import PatternSet

logger = logging.getLogger(__name__)


@dataclass
class SourceEntry:
    """One file to write: destination relative path, origin and reader."""
    path: str
    origin: str
    read: Callable[[], bytes]


@dataclass
class WorkResult:
    """Outcome of one operation."""
    operation: str
    target: str
    written: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    unchanged: int = 0
    marker_changed: bool = False

    @property
    def did_work(self) -> bool:
        """True if the pass changed anything on disk."""
        return bool(self.written or self.deleted or self.marker_changed)


def _read_file(path: Path) -> Callable[[], bytes]:
    def _read() -> bytes:
        try:
            return path.read_bytes()
        except OSError as exc:
            raise InstallIOError("Source file is not readable", path=str(path)) from exc
    return _read


def file_entry(source: Path, destination: str) -> SourceEntry:
    """Entry copying a single file to ``destination``."""
    return SourceEntry(join_path(destination), str(source), _read_file(Path(source)))


def _strip_first_segment(name: str) -> str:
    parts = name.split("/", 1)
    return parts[1] if len(parts) == 2 and parts[1] else name


def archive_entries(archive: Path, *, strip_root: bool = False,
                    skip: Iterable[str] = ()) -> List[SourceEntry]:
    """Entries of a zip archive.

    With ``strip_root`` the first path segment (the archive root directory)
    is removed. Paths in ``skip`` are left out.

    Raises:
        InstallIOError: if the archive can not be read.
    """
    skipped = set(skip)
    entries: List[SourceEntry] = []
    try:
        with zipfile.ZipFile(archive) as zf:
            names = [info.filename for info in zf.infolist() if not info.is_dir()]
    except (OSError, zipfile.BadZipFile) as exc:
        raise InstallIOError("Archive is not readable", path=str(archive)) from exc

    for name in names:
        rel = name.replace("\\", "/").lstrip("/")
        if strip_root:
            rel = _strip_first_segment(rel)
        if not rel or rel in skipped:
            continue
        entries.append(SourceEntry(rel, f"{archive}!{name}", _zip_reader(archive, name)))
    return entries


def _zip_reader(archive: Path, name: str) -> Callable[[], bytes]:
    def _read() -> bytes:
        try:
            with zipfile.ZipFile(archive) as zf:
                return zf.read(name)
        except (OSError, KeyError, zipfile.BadZipFile) as exc:
            raise InstallIOError("Archive entry is not readable", item=name,
                                 path=str(archive)) from exc
    return _read


def _under(path: str, prefixes: FrozenSet[str]) -> bool:
    return any(path == p or path.startswith(p + "/") for p in prefixes)


class SyncEngine:
    """Applies source entries to destination directories below one root."""

    def __init__(self, install_root: Path, timestamp: Optional[float] = None):
        self.install_root = Path(install_root)
        self.timestamp = time.time() if timestamp is None else timestamp

    def sync(self, target: str, entries: Iterable[SourceEntry], *,
             excludes: Optional[PatternSet] = None,
             preserve: Optional[PatternSet] = None,
             mode: SyncMode = SyncMode.MIRROR,
             nested: Iterable[str] = (),
             filters: Optional[FilterChain] = None,
             name: str = "") -> WorkResult:
        """Synchronise ``<install_root>/<target>`` with ``entries``.

        Args:
            target: destination directory relative to the install root
            entries: files to write, relative to the destination
            excludes: entries matching these patterns are not written
            preserve: destination files kept by a mirror although not written
            mode: mirror, overwrite or keep existing files
            nested: destination paths owned by other operations, never deleted
            filters: content filters; paths are matched relative to the install root
            name: operation name used for logging

        Returns:
            WorkResult of the pass

        Raises:
            PathConflict: if two entries share a destination path
            InstallIOError: on filesystem failures
        """
        excludes = excludes or PatternSet()
        preserve = preserve or PatternSet()
        filters = filters or FilterChain()
        nested_set = frozenset(nested)
        destination = self.install_root / target if target else self.install_root
        result = WorkResult(operation=name or target, target=target)

        collected: Dict[str, SourceEntry] = {}
        for entry in entries:
            if excludes.excluded(entry.path):
                logger.debug("Excluded %s from %s", entry.path, result.operation)
                continue
            first = collected.get(entry.path)
            if first is not None:
                raise PathConflict(join_path(target, entry.path), first.origin, entry.origin)
            existing = destination / entry.path
            if existing.is_dir() and not existing.is_symlink():
                raise PathConflict(join_path(target, entry.path), "existing directory", entry.origin)
            collected[entry.path] = entry

        with Timer() as t:
            try:
                destination.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise InstallIOError("Target directory can not be created", item=result.operation,
                                     path=str(destination)) from exc

            for rel in sorted(collected):
                self._write(destination, target, collected[rel], mode, filters, result)

            if mode == SyncMode.MIRROR:
                self._delete_unvisited(destination, set(collected), preserve, nested_set, result)

        if is_debug_enabled(logger):
            logger.debug(
                "Sync finished",
                extra=extra_context(
                    event="sync",
                    component="sync_engine",
                    action=mode.value,
                    outcome="changed" if result.did_work else "unchanged",
                    target=target,
                    written=len(result.written),
                    deleted=len(result.deleted),
                    duration_ms=t.duration_ms()
                )
            )
        return result

    def _write(self, destination: Path, target: str, entry: SourceEntry, mode: SyncMode,
               filters: FilterChain, result: WorkResult) -> None:
        path = destination / entry.path
        if mode == SyncMode.KEEP_EXISTING and (path.exists() or path.is_symlink()):
            result.unchanged += 1
            return

        data = entry.read()
        if filters:
            data, _ = filters.apply(join_path(target, entry.path), data)

        try:
            if path.is_file() and not path.is_symlink() and path.stat().st_size == len(data) \
                    and path.read_bytes() == data:
                result.unchanged += 1
                return
            path.parent.mkdir(parents=True, exist_ok=True)
            if path.is_symlink():
                path.unlink()
            tmp = path.with_name(path.name + ".tmp")
            tmp.write_bytes(data)
            os.replace(tmp, path)
            os.utime(path, (self.timestamp, self.timestamp))
        except OSError as exc:
            path.with_name(path.name + ".tmp").unlink(missing_ok=True)
            raise InstallIOError("File can not be written", item=entry.origin,
                                 path=str(path)) from exc
        result.written.append(entry.path)
        logger.debug("Written %s", path)

    def _delete_unvisited(self, destination: Path, visited: set, preserve: PatternSet,
                          nested: FrozenSet[str], result: WorkResult) -> None:
        for root, dirs, files in os.walk(destination):
            rel_root = os.path.relpath(root, destination).replace(os.sep, "/")
            rel_root = "" if rel_root == "." else rel_root

            kept_dirs = []
            for d in dirs:
                rel = join_path(rel_root, d)
                if _under(rel, nested):
                    continue
                if os.path.islink(os.path.join(root, d)):
                    files.append(d)
                    continue
                kept_dirs.append(d)
            dirs[:] = kept_dirs

            for f in files:
                rel = join_path(rel_root, f)
                if rel in visited or rel == Constants.CONTENT_MARKER_FILE or _under(rel, nested) \
                        or preserve.preserves(rel):
                    continue
                try:
                    os.unlink(os.path.join(root, f))
                except OSError as exc:
                    raise InstallIOError("File can not be deleted", item=result.operation,
                                         path=os.path.join(root, f)) from exc
                result.deleted.append(rel)
                logger.debug("Deleted %s", os.path.join(root, f))

        self._remove_empty_dirs(destination, nested, preserve)

    @staticmethod
    def _remove_empty_dirs(destination: Path, nested: FrozenSet[str], preserve: PatternSet) -> None:
        for root, _dirs, _files in os.walk(destination, topdown=False):
            if Path(root) == destination:
                continue
            rel = os.path.relpath(root, destination).replace(os.sep, "/")
            if _under(rel, nested) or any(n.startswith(rel + "/") for n in nested):
                continue
            if preserve.preserves(rel) or os.path.islink(root):
                continue
            try:
                if not os.listdir(root):
                    os.rmdir(root)
            except OSError as exc:
                raise InstallIOError("Directory can not be removed", path=root) from exc


def remove_tree(path: Path) -> None:
    """Delete a file, link or directory tree."""
    try:
        if path.is_symlink() or path.is_file():
            path.unlink()
        elif path.is_dir():
            shutil.rmtree(path)
    except OSError as exc:
        raise InstallIOError("Path can not be deleted", path=str(path)) from exc

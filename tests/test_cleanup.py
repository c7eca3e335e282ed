"""Tests for orphan removal and backups."""

from datetime import datetime

import pytest

from descriptor.models import (
    ComponentDescriptor,
    ContentType,
    DirectoryItem,
    FileContainer,
    FileItem,
    LinkItem,
    Module,
)
from installation.cleanup import CleanupEngine, TreeNode, declared_targets
from installation.markers import read_marker, requires_backup, write_marker


def _write(path, text="x"):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


class TestTreeNode:
    """Declared path tree."""

    def test_from_targets(self):
        tree = TreeNode.from_targets("root", ["modules/a", "modules/b", "libs", ""])
        modules = tree.get_child("modules")
        assert not modules.target
        assert sorted(modules.children) == ["a", "b"]
        assert modules.get_child("a").target
        assert tree.get_child("libs").target
        assert tree.get_child("missing") is None


class TestDeclaredTargets:
    """Paths owned by a descriptor."""

    def test_all_items_regardless_of_applicability(self):
        descriptor = ComponentDescriptor(
            modules=[Module(name="a", target_path="a", classifier="windows")],
            containers=[FileContainer(name="web", target_path="web")],
            directories=[DirectoryItem(target_path="logs")],
            links=[LinkItem(name="current", target_path="modules/a")],
            files=[FileItem(name="readme", extension="txt", target_path="doc")],
        )
        assert declared_targets(descriptor) == [
            "descriptor", "libs", "modules/a", "web", "logs", "current", "doc/readme.txt"]


class TestMarkers:
    """Content marker files."""

    def test_write_and_read(self, tmp_path):
        assert write_marker(tmp_path / "d", ContentType.DATA)
        assert not write_marker(tmp_path / "d", ContentType.DATA)
        assert read_marker(tmp_path / "d") == ContentType.DATA
        assert read_marker(tmp_path / "none") == ContentType.UNSPECIFIED

    def test_requires_backup(self, tmp_path):
        _write(tmp_path / "plain" / "file")
        assert requires_backup(tmp_path / "plain")

        write_marker(tmp_path / "code", ContentType.IMMUTABLE)
        _write(tmp_path / "code" / "lib.jar")
        assert not requires_backup(tmp_path / "code")

        write_marker(tmp_path / "code" / "db", ContentType.DATA)
        assert requires_backup(tmp_path / "code")


class TestCleanupEngine:
    """Lock-step walk of the install root."""

    @pytest.fixture
    def layout(self, tmp_path):
        root = tmp_path / "install" / "comp"
        _write(root / "modules" / "A" / "lib.jar")
        write_marker(root / "modules" / "A", ContentType.IMMUTABLE)
        _write(root / "modules" / "B" / "app.db")
        write_marker(root / "modules" / "B", ContentType.DATA)
        _write(root / "modules" / "C" / "lib.jar")
        write_marker(root / "modules" / "C", ContentType.IMMUTABLE)
        _write(root / "stray.txt")
        _write(root / "old" / "notes.txt")
        write_marker(root, ContentType.IMMUTABLE)
        return root

    def test_orphans(self, layout, tmp_path):
        engine = CleanupEngine(tmp_path / "backup", datetime(2024, 1, 2, 3, 4, 5))
        report = engine.cleanup(layout, ["modules/A", "descriptor"])

        assert (layout / "modules" / "A" / "lib.jar").exists()
        assert not (layout / "modules" / "B").exists()
        assert (tmp_path / "backup" / "modules" / "B" / "app.db").exists()
        assert not (layout / "modules" / "C").exists()
        assert not (layout / "stray.txt").exists()
        assert (tmp_path / "backup" / "old" / "notes.txt").exists()
        assert (layout / ".install").exists()
        assert sorted(report.deleted) == ["modules/C", "stray.txt"]
        assert sorted(rel for rel, _ in report.backed_up) == ["modules/B", "old"]

    def test_existing_backup_gets_timestamp_suffix(self, layout, tmp_path):
        _write(tmp_path / "backup" / "old" / "previous.txt")
        engine = CleanupEngine(tmp_path / "backup", datetime(2024, 1, 2, 3, 4, 5))
        engine.cleanup(layout, ["modules"])
        assert (tmp_path / "backup" / "old" / "previous.txt").exists()
        assert (tmp_path / "backup" / "old.20240102030405" / "notes.txt").exists()

    def test_declared_content_untouched(self, layout, tmp_path):
        report = CleanupEngine(tmp_path / "backup").cleanup(
            layout, ["modules", "stray.txt", "old"])
        assert not report.did_work

    def test_backup_dir_inside_root_skipped(self, layout):
        backup = layout / ".backup"
        _write(backup / "kept.txt")
        report = CleanupEngine(backup).cleanup(layout, ["modules", "stray.txt", "old"])
        assert not report.did_work
        assert (backup / "kept.txt").exists()

    def test_missing_root(self, tmp_path):
        assert not CleanupEngine(tmp_path / "b").cleanup(tmp_path / "nothing", ["a"]).did_work

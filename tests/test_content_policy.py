"""Tests for install operation planning."""

import pytest

from descriptor.models import (
    ComponentDescriptor,
    ContentType,
    DirectoryItem,
    FileContainer,
    FileItem,
    Library,
    LinkItem,
    Module,
    PatternSpec,
    PropertyItem,
)
from installation.content_policy import (
    ArchiveSource,
    ContentPolicy,
    FileSource,
    OperationKind,
    SyncMode,
    sync_mode_for,
)
from installation.environment import InstallEnvironment
from installation.sync import SourceEntry, SyncEngine
from versioning.models import Artifact, Dependency


def _module(name="app", **kwargs):
    dependency = Dependency("org", name, "1.0")
    values = {
        "name": name,
        "dependency": dependency,
        "artifacts": [Artifact(name, "jar", "jar")],
        "jar_path": "libs",
        "target_path": name,
    }
    values.update(kwargs)
    return Module(**values)


@pytest.fixture
def linux_policy():
    return ContentPolicy(InstallEnvironment.create("linux"), {"host": "db.local"})


class TestSyncModes:
    """Content type to sync mode mapping."""

    @pytest.mark.parametrize("content_type,is_update,expected", [
        (ContentType.IMMUTABLE, False, SyncMode.MIRROR),
        (ContentType.DATA, False, SyncMode.MIRROR),
        (ContentType.CONFIGURATION, False, SyncMode.MIRROR),
        (ContentType.IMMUTABLE, True, SyncMode.MIRROR),
        (ContentType.DATA, True, SyncMode.KEEP_EXISTING),
        (ContentType.UNSPECIFIED, True, SyncMode.OVERWRITE),
        (ContentType.CONFIGURATION, True, SyncMode.OVERWRITE),
    ])
    def test_sync_mode_for(self, content_type, is_update, expected):
        assert sync_mode_for(content_type, is_update) == expected


class TestPlan:
    """Operation order and sources."""

    def test_operation_order(self, linux_policy):
        descriptor = ComponentDescriptor(
            links=[LinkItem(name="current", target_path="modules/app")],
            files=[FileItem(name="readme", extension="txt", target_path="doc")],
            containers=[FileContainer(name="web", target_path="web")],
            libs=[Library(dependency=Dependency("org", "util", "2.0"), target_name="org_util")],
            modules=[_module()],
            directories=[DirectoryItem(target_path="logs", content_type=ContentType.DATA)],
        )
        operations = linux_policy.plan(descriptor, is_update=False)
        assert [op.kind for op in operations] == [
            OperationKind.DIRECTORY,
            OperationKind.MODULE,
            OperationKind.LIBRARIES,
            OperationKind.CONTAINER,
            OperationKind.FILES,
            OperationKind.LINK,
        ]
        assert [op.target for op in operations] == [
            "logs", "modules/app", "libs", "web", "doc", "current"]
        directory = operations[0]
        assert directory.write_marker
        assert directory.content_type == ContentType.DATA
        libs = operations[2]
        assert libs.mode == SyncMode.MIRROR
        assert [s.path for s in libs.sources] == ["org_util.jar"]
        assert operations[5].link_target == "modules/app"

    def test_module_sources(self, linux_policy):
        module = _module(artifacts=[
            Artifact("app", "jar", "jar"),
            Artifact("app", "jar", "jar", "sources"),
            Artifact("native", "pkg", "zip", "linux-x64"),
            Artifact("native", "pkg", "zip", "windows"),
            Artifact("web", "pkg", "zip"),
        ], descriptor_path="meta", target_included=True)
        op = linux_policy.plan(ComponentDescriptor(modules=[module]), False)[0]
        files = [s.path for s in op.sources if isinstance(s, FileSource)]
        archives = [s for s in op.sources if isinstance(s, ArchiveSource)]
        assert files == ["libs/app.jar", "libs/app-sources.jar", "meta/ivy.xml"]
        assert [a.ref.artifact.name + "/" + a.ref.artifact.classifier for a in archives] == \
            ["native/linux-x64", "web/"]
        assert all(a.strip_root for a in archives)
        assert op.sources[-1].ref.dependency == Dependency("org", "app", "1.0")

    def test_not_applicable_items_skipped(self, linux_policy):
        descriptor = ComponentDescriptor(
            modules=[_module("winonly", classifier="windows"), _module("any")],
        )
        operations = linux_policy.plan(descriptor, False)
        assert [op.name for op in operations] == ["any"]

    def test_update_skips_not_updatable(self, linux_policy):
        descriptor = ComponentDescriptor(
            modules=[_module("frozen", updatable=False), _module("live")],
        )
        assert [op.name for op in linux_policy.plan(descriptor, False)] == ["frozen", "live"]
        assert [op.name for op in linux_policy.plan(descriptor, True)] == ["live"]

    def test_excludes_and_preserve_merge(self, linux_policy):
        descriptor = ComponentDescriptor(
            excludes={"**/*.tmp"},
            preserve=PatternSpec(includes=frozenset({"data/**"})),
            modules=[_module(excludes={"secret/**"}, excludes_from_update={"conf/**"},
                             preserve=PatternSpec(excludes=frozenset({"data/cache/**"})))],
        )
        fresh = linux_policy.plan(descriptor, False)[0]
        update = linux_policy.plan(descriptor, True)[0]
        assert fresh.excludes.excludes == {"**/*.tmp", "secret/**"}
        assert update.excludes.excludes == {"**/*.tmp", "secret/**", "conf/**"}
        assert fresh.preserve.preserves("data/app.db")
        assert not fresh.preserve.preserves("data/cache/entry")


class TestLooseFiles:
    """Files attached to managed directories or grouped per directory."""

    def test_file_inside_module_overrides_archive_entry(self, linux_policy):
        module = _module(artifacts=[Artifact("web", "pkg", "zip")])
        descriptor = ComponentDescriptor(
            modules=[module],
            files=[FileItem(name="site", extension="xml", target_path="modules/app/conf")],
        )
        operations = linux_policy.plan(descriptor, False)
        assert len(operations) == 1
        op = operations[0]
        archive = [s for s in op.sources if isinstance(s, ArchiveSource)][0]
        assert archive.skip == frozenset({"conf/site.xml"})
        assert op.sources[-1].path == "conf/site.xml"
        assert op.sources[-1].ref.dependency is None

    def test_data_file_inside_module_not_replaced_on_update(self, linux_policy):
        descriptor = ComponentDescriptor(
            modules=[_module()],
            files=[FileItem(name="db", extension="h2", target_path="modules/app/data",
                            content_type=ContentType.DATA)],
        )
        op = linux_policy.plan(descriptor, True)[0]
        assert all(s.path != "data/db.h2" for s in op.sources if isinstance(s, FileSource))

    def test_loose_files_grouped_by_directory(self, linux_policy):
        descriptor = ComponentDescriptor(files=[
            FileItem(name="a", extension="txt", target_path="doc"),
            FileItem(name="b", extension="txt", target_path="doc"),
            FileItem(name="seed", extension="db", target_path="db", content_type=ContentType.DATA),
        ])
        fresh = linux_policy.plan(descriptor, False)
        update = linux_policy.plan(descriptor, True)
        assert [(op.target, [s.path for s in op.sources]) for op in fresh] == [
            ("doc", ["a.txt", "b.txt"]), ("db", ["seed.db"])]
        assert [op.mode for op in fresh] == [SyncMode.OVERWRITE, SyncMode.OVERWRITE]
        assert [op.mode for op in update] == [SyncMode.OVERWRITE, SyncMode.KEEP_EXISTING]


class TestFiltersAndNesting:
    """Filter chains and nested destinations."""

    def test_placeholders_only_for_configuration(self, linux_policy):
        descriptor = ComponentDescriptor(
            containers=[FileContainer(name="conf", target_path="conf",
                                      content_type=ContentType.CONFIGURATION),
                        FileContainer(name="bin", target_path="bin")],
            properties=[PropertyItem(key="port", value="1", pattern="**/*.properties")],
        )
        conf, binaries = linux_policy.plan(descriptor, False)
        assert [f.name for f in conf.filters.filters] == ["placeholders", "properties:**/*.properties"]
        assert [f.name for f in binaries.filters.filters] == ["properties:**/*.properties"]

    def test_nested_targets_protected(self, linux_policy):
        descriptor = ComponentDescriptor(
            modules_path="web/plugins",
            modules=[_module()],
            containers=[FileContainer(name="web", target_path="web")],
        )
        module, container = linux_policy.plan(descriptor, False)
        assert container.nested == frozenset({"plugins/app"})
        assert module.nested == frozenset()


class TestUpdatePlanning:
    """Update passes never drop or overwrite protected content."""

    def test_loose_files_grouped_by_content_type(self, linux_policy):
        descriptor = ComponentDescriptor(files=[
            FileItem(name="a", extension="txt", target_path="etc",
                     content_type=ContentType.IMMUTABLE),
            FileItem(name="b", extension="db", target_path="etc", content_type=ContentType.DATA),
        ])
        update = linux_policy.plan(descriptor, True)
        assert [(op.target, op.mode, [s.path for s in op.sources]) for op in update] == [
            ("etc", SyncMode.OVERWRITE, ["a.txt"]),
            ("etc", SyncMode.KEEP_EXISTING, ["b.db"]),
        ]

    def test_not_updatable_library_kept(self, linux_policy, tmp_path):
        descriptor = ComponentDescriptor(libs=[
            Library(dependency=Dependency("org", "a", "1.0"), target_name="a", updatable=False),
            Library(dependency=Dependency("org", "b", "1.0"), target_name="b"),
        ])
        fresh = linux_policy.plan(descriptor, False)[0]
        assert [s.path for s in fresh.sources] == ["a.jar", "b.jar"]

        op = linux_policy.plan(descriptor, True)[0]
        assert [s.path for s in op.sources] == ["b.jar"]
        assert op.nested == frozenset({"a.jar"})

        root = tmp_path / "install"
        (root / "libs").mkdir(parents=True)
        (root / "libs" / "a.jar").write_bytes(b"a")
        (root / "libs" / "old.jar").write_bytes(b"old")
        SyncEngine(root).sync(op.target, [SourceEntry("b.jar", "b", lambda: b"b")],
                              mode=op.mode, preserve=op.preserve, nested=op.nested)
        assert (root / "libs" / "a.jar").exists()
        assert not (root / "libs" / "old.jar").exists()

    def test_libraries_at_root_not_mirrored(self, linux_policy):
        descriptor = ComponentDescriptor(
            libs_path="",
            libs=[Library(dependency=Dependency("org", "a", "1.0"), target_name="a")],
        )
        assert linux_policy.plan(descriptor, False)[0].mode == SyncMode.OVERWRITE

    def test_not_updatable_file_inside_mirrored_module(self, linux_policy):
        module = _module(artifacts=[Artifact("web", "pkg", "zip")],
                         content_type=ContentType.IMMUTABLE)
        descriptor = ComponentDescriptor(
            modules=[module],
            files=[FileItem(name="local", extension="properties", target_path="modules/app/conf",
                            updatable=False)],
        )
        op = linux_policy.plan(descriptor, True)[0]
        archive = [s for s in op.sources if isinstance(s, ArchiveSource)][0]
        assert op.mode == SyncMode.MIRROR
        assert archive.skip == frozenset({"conf/local.properties"})
        assert "conf/local.properties" in op.nested
        assert all(s.path != "conf/local.properties"
                   for s in op.sources if isinstance(s, FileSource))

"""End-to-end reconciliation against a repository on disk."""

import os

import pytest

from common.errors import FormatMismatch, ResolutionFailure
from installation.environment import InstallEnvironment
from installation.filters import full_content_filter
from installation.reconciler import ComponentReconciler, InstallComponent, reconcile_all
from versioning.models import Dependency


def _read(path):
    return path.read_text(encoding="utf-8")


@pytest.fixture
def reconciler(tmp_path, component_repo):
    return ComponentReconciler(
        tmp_path / "install",
        tmp_path / "admin",
        [component_repo],
        InstallEnvironment.create("linux"),
        placeholders={"host": "db.local"},
    )


@pytest.fixture
def component():
    return InstallComponent(Dependency("org", "comp"))


class TestReconcile:
    """Fresh install, update and idempotence."""

    def test_fresh_install(self, reconciler, component, tmp_path):
        result = reconciler.reconcile(component)
        root = tmp_path / "install" / "comp"

        assert not result.is_update
        assert result.version == "1.0"
        assert result.did_work
        assert (root / "modules" / "app" / "libs" / "app.jar").read_bytes() == b"PK-app-1.0"
        assert (root / "modules" / "app" / "ivy.xml").is_file()
        assert _read(root / "modules" / "app" / ".install") == "IMMUTABLE"
        assert _read(root / "data" / "seed.txt") == "seed"
        assert _read(root / "data" / "sub" / "info.txt") == "info"
        assert _read(root / "data" / ".install") == "DATA"
        assert _read(root / "logs" / ".install") == "DATA"
        assert _read(root / "conf" / "app.properties") == "host=db.local\nserver.port=9090\n"
        assert (root / "descriptor" / "comp.component").is_file()

    def test_update_keeps_data_and_cleans_orphans(self, reconciler, component, tmp_path):
        root = tmp_path / "install" / "comp"
        reconciler.reconcile(component)

        (root / "data" / "seed.txt").write_text("changed by user", encoding="utf-8")
        (root / "data" / "user.db").write_text("user", encoding="utf-8")
        (root / "modules" / "app" / "stale.jar").write_text("stale", encoding="utf-8")
        (root / "notes.txt").write_text("orphan", encoding="utf-8")
        (root / "old").mkdir()
        (root / "old" / "report.csv").write_text("1,2", encoding="utf-8")

        result = reconciler.reconcile(component)

        assert result.is_update
        assert _read(root / "data" / "seed.txt") == "changed by user"
        assert (root / "data" / "user.db").exists()
        assert not (root / "modules" / "app" / "stale.jar").exists()
        assert not (root / "notes.txt").exists()
        assert not (root / "old").exists()
        assert _read(tmp_path / "admin" / "backup" / "comp" / "old" / "report.csv") == "1,2"
        assert result.cleanup.deleted == ["notes.txt"]

    def test_second_run_is_idempotent(self, reconciler, component, tmp_path):
        reconciler.reconcile(component)
        jar = tmp_path / "install" / "comp" / "modules" / "app" / "libs" / "app.jar"
        mtime = os.path.getmtime(jar)

        result = reconciler.reconcile(component)

        assert not result.did_work
        assert os.path.getmtime(jar) == mtime

    def test_forced_fresh_install_mirrors_data(self, reconciler, component, tmp_path):
        root = tmp_path / "install" / "comp"
        reconciler.reconcile(component)
        (root / "data" / "seed.txt").write_text("changed", encoding="utf-8")

        result = reconciler.reconcile(component, is_update=False)

        assert not result.is_update
        assert _read(root / "data" / "seed.txt") == "seed"

    def test_custom_filters_applied(self, tmp_path, component_repo, component):
        stamp = full_content_filter("stamp", ["**/*.properties"], lambda text: text + "# managed\n")
        reconciler = ComponentReconciler(tmp_path / "install", tmp_path / "admin", [component_repo],
                                         InstallEnvironment.create("linux"), filters=[stamp])
        reconciler.reconcile(component)
        conf = tmp_path / "install" / "comp" / "conf" / "app.properties"
        assert _read(conf) == "host=<@host@>\nserver.port=9090\n# managed\n"


class TestFailures:
    """Failures leave the install root untouched."""

    def test_format_mismatch(self, tmp_path, make_component_repo):
        repo = make_component_repo(tmp_path / "repo2", format_version="2.0")
        reconciler = ComponentReconciler(tmp_path / "install", tmp_path / "admin", [repo],
                                         InstallEnvironment.create("linux"))
        with pytest.raises(FormatMismatch):
            reconciler.reconcile(InstallComponent(Dependency("org", "comp")))
        assert not (tmp_path / "install").exists()

    def test_reconcile_all_continues_after_failure(self, reconciler, tmp_path):
        missing = InstallComponent(Dependency("org", "missing"))
        present = InstallComponent(Dependency("org", "comp"), "custom")
        outcomes = reconcile_all(reconciler, [missing, present])

        assert isinstance(outcomes[0][1], ResolutionFailure)
        assert outcomes[1][1].version == "1.0"
        assert (tmp_path / "install" / "custom" / "modules" / "app" / "libs" / "app.jar").exists()

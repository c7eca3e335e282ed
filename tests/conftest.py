"""Shared fixtures: a pattern layout repository on disk holding one component."""

import textwrap
import zipfile

import pytest

from constants import Constants
from versioning.models import Repository, RepositoryType

COMPONENT_DESCRIPTOR = """\
metadata:
  formatVersion: "{format_version}"
  group: org
  module: comp
  version: "1.0"
component:
  modules:
    - name: app
      dependency: org:app:1.0
      contentType: IMMUTABLE
  containers:
    - name: data
      contentType: DATA
      targetIncluded: true
  directories:
    - targetPath: logs
      contentType: DATA
  files:
    - name: app
      extension: properties
      targetPath: conf
      contentType: CONFIGURATION
  properties:
    - key: server.port
      value: "9090"
"""

MODULE_IVY = """\
<ivy-module version="2.0">
  <info organisation="org" module="app" revision="1.0"/>
</ivy-module>
"""


def _put(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(data, bytes):
        path.write_bytes(data)
    else:
        path.write_text(data, encoding="utf-8")


def build_component_repo(root, format_version=Constants.DESCRIPTOR_FORMAT_VERSION):
    """Create ``org:comp:1.0`` and its module ``org:app:1.0`` below ``root``."""
    comp = root / "org" / "comp" / "1.0"
    _put(comp / "components" / "comp-component-1.0.component",
         COMPONENT_DESCRIPTOR.format(format_version=format_version))
    _put(comp / "propertiess" / "app-properties-1.0.properties",
         "host=<@host@>\nserver.port=8080\n")
    archive = comp / "zips" / "data-container-1.0.zip"
    archive.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("data/seed.txt", "seed")
        zf.writestr("data/sub/info.txt", "info")

    app = root / "org" / "app" / "1.0"
    _put(app / "jars" / "app-jar-1.0.jar", b"PK-app-1.0")
    _put(app / "ivys" / "ivy-1.0.xml", textwrap.dedent(MODULE_IVY))
    return Repository(RepositoryType.IVY, root.as_uri(), pattern=Constants.IVY_DEFAULT_PATTERN)


@pytest.fixture
def component_repo(tmp_path):
    """Repository holding a valid component."""
    return build_component_repo(tmp_path / "repo")


@pytest.fixture
def make_component_repo():
    """Factory building a component repository at a given path."""
    return build_component_repo

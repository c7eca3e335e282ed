"""Tests for install configuration loading."""

import textwrap

import pytest

from cli_config import load_install_config
from common.errors import ConfigError, UnsupportedRepository
from constants import Constants
from installation.environment import OSType
from versioning.models import RepositoryType


def _config(tmp_path, text):
    path = tmp_path / "install.yml"
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


class TestLoadInstallConfig:
    """YAML configuration files."""

    def test_full_config(self, tmp_path):
        path = _config(tmp_path, """\
            installDir: opt/app
            environment: prod
            os: linux
            timeout: 10
            insecure: true
            placeholders:
              host: db.local
              port: 5432
            proxy:
              https: {host: proxy.local, port: 3128}
            repositories:
              - url: https://repo.example.com/maven2
                username: deploy
                password: secret
              - type: ivy
                url: repo
            components:
              - com.example:shop:1.+
              - dependency: com.example:shop:2.0
                path: shop2
            """)
        config = load_install_config(str(path), env={})
        assert config.install_dir == (tmp_path / "opt" / "app").resolve()
        assert config.admin_dir == config.install_dir.parent / Constants.DEFAULT_ADMIN_DIR_NAME
        assert config.backup_dir == config.admin_dir / "backup"

        maven, ivy = config.repositories
        assert maven.type == RepositoryType.MAVEN
        assert maven.credentials.usable
        assert ivy.type == RepositoryType.IVY
        assert ivy.pattern == Constants.IVY_DEFAULT_PATTERN
        assert ivy.url == str((tmp_path / "repo").resolve())

        assert [c.install_path for c in config.components] == ["shop", "shop2"]
        assert config.placeholders == {"host": "db.local", "port": "5432"}
        assert config.transport.timeout == 10
        assert not config.transport.verify
        assert config.transport.proxies == {"https": ("proxy.local", 3128)}

        env = config.install_environment()
        assert env.os_type == OSType.LINUX
        assert env.types == frozenset({"prod"})

    def test_environment_overrides(self, tmp_path):
        path = _config(tmp_path, """\
            installDir: /opt/app
            repositories:
              - url: https://repo.example.com/maven2
            """)
        env = {
            "COMPINSTALL_REPO_USERNAME": "ci",
            "COMPINSTALL_REPO_PASSWORD": "token",
            "COMPINSTALL_HTTP_PROXY_HOST": "proxy.env",
            "COMPINSTALL_HTTP_PROXY_PORT": "8080",
        }
        config = load_install_config(str(path), env=env)
        assert config.repositories[0].credentials.username == "ci"
        assert config.transport.proxies == {"http": ("proxy.env", 8080)}

    def test_install_dir_required(self, tmp_path):
        with pytest.raises(ConfigError):
            load_install_config(str(_config(tmp_path, "components: []\n")), env={})

    def test_duplicate_component(self, tmp_path):
        path = _config(tmp_path, """\
            installDir: app
            components:
              - com.example:shop:1.0
              - com.example:shop:2.0
            """)
        with pytest.raises(ConfigError):
            load_install_config(str(path), env={})

    def test_unknown_repository_type(self, tmp_path):
        path = _config(tmp_path, """\
            installDir: app
            repositories:
              - type: npm
                url: https://registry.example.com
            """)
        with pytest.raises(UnsupportedRepository):
            load_install_config(str(path), env={})

    def test_invalid_proxy_port(self, tmp_path):
        path = _config(tmp_path, "installDir: app\n")
        with pytest.raises(ConfigError):
            load_install_config(str(path), env={"COMPINSTALL_HTTPS_PROXY_HOST": "p",
                                                "COMPINSTALL_HTTPS_PROXY_PORT": "abc"})

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_install_config(str(tmp_path / "none.yml"), env={})

"""Install configuration loading.

Reads the YAML/JSON configuration naming the install directory, the
repositories and the components to install. Environment variables override
credentials and proxy settings with highest precedence.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from common.errors import ConfigError
from common.http_client import Credentials, TransportConfig
from constants import Constants
from installation.environment import InstallEnvironment
from installation.reconciler import InstallComponent
from versioning.models import Repository, RepositoryType
from versioning.parser import parse_coordinate

logger = logging.getLogger(__name__)


@dataclass
class InstallConfig:
    """Parsed install configuration."""
    install_dir: Path
    admin_dir: Path
    backup_dir: Path
    repositories: List[Repository] = field(default_factory=list)
    components: List[InstallComponent] = field(default_factory=list)
    environment: List[str] = field(default_factory=list)
    os_name: Optional[str] = None
    placeholders: Dict[str, str] = field(default_factory=dict)
    transport: TransportConfig = field(default_factory=TransportConfig)

    def install_environment(self) -> InstallEnvironment:
        """Environment value injected into the reconciliation."""
        return InstallEnvironment.create(self.os_name, self.environment)


def _read(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except OSError as exc:
        raise ConfigError(f"Config file '{path}' is not readable: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to load config '{path}': {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file '{path}' does not contain a mapping.")
    return data


def _repository_url(url: str, base: Path) -> str:
    """Resolve plain relative paths against the config file directory."""
    if "://" in url or url.startswith("file:") or os.path.isabs(url):
        return url
    return str((base / url).resolve())


def _repository(entry: Any, env: Mapping[str, str], base: Path) -> Repository:
    if not isinstance(entry, dict) or not entry.get("url"):
        raise ConfigError(f"Repository entry '{entry}' needs at least a url.")
    repo_type = RepositoryType.from_string(str(entry.get("type") or RepositoryType.MAVEN.value))
    username = str(entry.get("username") or "") or env.get(Constants.ENV_REPO_USERNAME, "")
    password = str(entry.get("password") or "") or env.get(Constants.ENV_REPO_PASSWORD, "")
    pattern = str(entry.get("pattern") or "")
    if repo_type == RepositoryType.IVY and not pattern:
        pattern = Constants.IVY_DEFAULT_PATTERN
    return Repository(
        type=repo_type,
        url=_repository_url(str(entry["url"]), base),
        credentials=Credentials(username, password),
        pattern=pattern,
    )


def _components(entries: Any) -> List[InstallComponent]:
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise ConfigError("'components' must be a list.")
    components: List[InstallComponent] = []
    seen: Dict[Tuple[str, str, str], str] = {}
    for entry in entries:
        if isinstance(entry, str):
            entry = {"dependency": entry}
        if not isinstance(entry, dict) or not entry.get("dependency"):
            raise ConfigError(f"Component entry '{entry}' needs a dependency.")
        try:
            dependency = parse_coordinate(str(entry["dependency"]))
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
        component = InstallComponent(dependency, str(entry.get("path") or ""))
        key = (dependency.group, dependency.module, component.install_path)
        if key in seen:
            raise ConfigError(
                f"Component '{dependency.group}:{dependency.module}' is configured twice "
                f"for path '{component.install_path}'."
            )
        seen[key] = str(dependency)
        components.append(component)
    return components


def _proxies(section: Any, env: Mapping[str, str]) -> Dict[str, Tuple[str, int]]:
    proxies: Dict[str, Tuple[str, int]] = {}
    if section and not isinstance(section, dict):
        raise ConfigError("'proxy' must be a mapping of scheme to host and port.")
    for scheme, value in (section or {}).items():
        if isinstance(value, dict) and value.get("host") and value.get("port"):
            try:
                proxies[str(scheme).lower()] = (str(value["host"]), int(value["port"]))
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"Invalid proxy port '{value['port']}' for {scheme}.") from exc
    for scheme in ("http", "https"):
        host = env.get(Constants.ENV_PROXY_HOST.format(scheme=scheme.upper()), "")
        port = env.get(Constants.ENV_PROXY_PORT.format(scheme=scheme.upper()), "")
        if host and port:
            try:
                proxies[scheme] = (host, int(port))
            except ValueError as exc:
                raise ConfigError(f"Invalid proxy port '{port}' for {scheme}.") from exc
    return proxies


def load_install_config(path: str, env: Optional[Mapping[str, str]] = None) -> InstallConfig:
    """Load the install configuration from a YAML or JSON file.

    Args:
        path: configuration file
        env: environment used for overrides, defaults to ``os.environ``

    Returns:
        InstallConfig

    Raises:
        ConfigError: for missing files and malformed content
        UnsupportedRepository: for unknown repository types
    """
    env = os.environ if env is None else env
    config_path = Path(path)
    data = _read(config_path)

    if not data.get("installDir"):
        raise ConfigError("'installDir' is required.")
    base = config_path.parent
    install_dir = (base / str(data["installDir"])).resolve()
    admin_dir = (base / str(data["adminDir"])).resolve() if data.get("adminDir") \
        else install_dir.parent / Constants.DEFAULT_ADMIN_DIR_NAME
    backup_dir = (base / str(data["backupDir"])).resolve() if data.get("backupDir") \
        else admin_dir / Constants.DEFAULT_BACKUP_DIR_NAME

    environment = data.get("environment") or []
    if isinstance(environment, str):
        environment = [environment]
    placeholders = data.get("placeholders") or {}
    if not isinstance(placeholders, dict):
        raise ConfigError("'placeholders' must be a mapping.")

    try:
        timeout = int(data.get("timeout", Constants.REQUEST_TIMEOUT))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid timeout '{data.get('timeout')}'.") from exc

    config = InstallConfig(
        install_dir=install_dir,
        admin_dir=admin_dir,
        backup_dir=backup_dir,
        repositories=[_repository(r, env, base) for r in (data.get("repositories") or [])],
        components=_components(data.get("components")),
        environment=[str(e) for e in environment],
        os_name=str(data["os"]) if data.get("os") else None,
        placeholders={str(k): "" if v is None else str(v) for k, v in placeholders.items()},
        transport=TransportConfig(
            proxies=_proxies(data.get("proxy"), env),
            timeout=timeout,
            verify=not bool(data.get("insecure", False)),
        ),
    )
    logger.debug("Config %s loaded: %d repositories, %d components", config_path,
                 len(config.repositories), len(config.components))
    return config

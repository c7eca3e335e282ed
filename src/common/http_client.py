"""Shared transport helpers used by the resolvers and the artifact provider.

Encapsulates request/timeout error handling for http(s) and file URLs so
callers deal with one error type. Failures are never retried here: the
caller decides whether to rerun the whole reconciliation.
"""
from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from html.parser import HTMLParser
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote, urlsplit

import requests

from constants import Constants
from common.errors import InstallIOError
from common.logging_utils import Timer, extra_context, is_debug_enabled, safe_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    """Basic authentication credentials of a repository."""

    username: str = ""
    password: str = ""

    @property
    def usable(self) -> bool:
        """True when both username and password are set."""
        return bool(self.username.strip()) and bool(self.password.strip())


@dataclass
class TransportConfig:
    """Settings shared by every request of one run.

    Attributes:
        proxies: scheme -> (host, port)
        timeout: request timeout in seconds
        verify: TLS certificate verification
    """

    proxies: Dict[str, Tuple[str, int]] = field(default_factory=dict)
    timeout: int = Constants.REQUEST_TIMEOUT
    verify: bool = True

    def proxies_for(self, scheme: str) -> Optional[Dict[str, str]]:
        """Return a requests-compatible proxy mapping for the URL scheme."""
        entry = self.proxies.get(scheme)
        if not entry:
            return None
        host, port = entry
        if not host or not port or int(port) < 0:
            return None
        logger.info("Proxy host is used: %s://%s:%s", scheme, host, port)
        return {scheme: f"http://{host}:{port}"}


_DEFAULT_CONFIG = TransportConfig()


def _scheme(url: str) -> str:
    return urlsplit(url).scheme.lower()


def local_path(url: str) -> Path:
    """Convert a file URL (or plain path) into a local path."""
    parts = urlsplit(url)
    if parts.scheme and parts.scheme != "file":
        raise ValueError(f"Not a file URL: {url}")
    if not parts.scheme:
        return Path(url)
    return Path(unquote(parts.path))


def _request_kwargs(url: str, credentials: Optional[Credentials],
                    config: TransportConfig) -> Dict[str, Any]:
    scheme = _scheme(url)
    kwargs: Dict[str, Any] = {"timeout": config.timeout, "verify": config.verify}
    if credentials is not None and credentials.usable and scheme.startswith("http"):
        logger.info("User %s is used for access.", credentials.username)
        kwargs["auth"] = (credentials.username, credentials.password)
    proxies = config.proxies_for(scheme)
    if proxies:
        kwargs["proxies"] = proxies
    return kwargs


def safe_get(url: str, *, context: str, credentials: Optional[Credentials] = None,
             config: Optional[TransportConfig] = None, **kwargs: Any) -> requests.Response:
    """Perform a GET request with consistent error handling and DEBUG traces.

    Raises:
        InstallIOError: on timeouts, connection errors and non-200 answers.
    """
    config = config or _DEFAULT_CONFIG
    safe_target = safe_url(url)
    with Timer() as t:
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP request",
                extra=extra_context(
                    event="http_request",
                    component="http_client",
                    action="GET",
                    target=safe_target,
                    context=context
                )
            )
        try:
            res = requests.get(url, **_request_kwargs(url, credentials, config), **kwargs)
        except requests.Timeout as exc:
            raise InstallIOError(
                f"{context} request timed out after {config.timeout} seconds", path=safe_target
            ) from exc
        except requests.RequestException as exc:  # includes ConnectionError
            raise InstallIOError(f"{context} connection error: {exc}", path=safe_target) from exc

        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="GET",
                    outcome="success" if res.status_code == 200 else "non_200",
                    status_code=res.status_code,
                    duration_ms=t.duration_ms(),
                    target=safe_target,
                    context=context
                )
            )
    if res.status_code != 200:
        raise InstallIOError(f"{context} request failed", path=safe_target,
                             status_code=res.status_code)
    return res


def fetch_text(url: str, *, context: str = "repository",
               credentials: Optional[Credentials] = None,
               config: Optional[TransportConfig] = None) -> str:
    """Return the body of a remote or local document as text."""
    if _scheme(url) in ("", "file"):
        path = local_path(url)
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise InstallIOError(f"{context} file is not readable", path=str(path)) from exc
    return safe_get(url, context=context, credentials=credentials, config=config).text


class _IndexParser(HTMLParser):
    """Collects (href, text) pairs of all anchors in an HTML index page."""

    def __init__(self) -> None:
        super().__init__()
        self.links: List[Tuple[str, str]] = []
        self._href: Optional[str] = None
        self._text: List[str] = []

    def handle_starttag(self, tag, attrs):
        if tag.lower() == "a":
            self._href = dict(attrs).get("href") or ""
            self._text = []

    def handle_data(self, data):
        if self._href is not None:
            self._text.append(data)

    def handle_endtag(self, tag):
        if tag.lower() == "a" and self._href is not None:
            self.links.append((self._href, "".join(self._text).strip()))
            self._href = None


def parse_index_page(html: str) -> List[str]:
    """Extract child directory names from an HTML directory index.

    Only anchors whose href ends with a slash and does not point upwards are
    considered. The anchor text is preferred; the last href segment is used
    when the text is empty.
    """
    parser = _IndexParser()
    parser.feed(html)
    parser.close()
    names: List[str] = []
    for href, text in parser.links:
        if href.startswith("..") or not href.endswith("/"):
            continue
        name = text.replace("/", "").strip()
        if not name:
            name = unquote(href.rstrip("/").rsplit("/", 1)[-1])
        if name and name not in names:
            names.append(name)
    return names


def list_directory(url: str, *, context: str = "repository",
                   credentials: Optional[Credentials] = None,
                   config: Optional[TransportConfig] = None) -> List[str]:
    """List child directory names below a directory-style URL."""
    if _scheme(url) in ("", "file"):
        path = local_path(url)
        if not path.is_dir():
            raise InstallIOError(f"{context} directory does not exist", path=str(path))
        try:
            return sorted(entry.name for entry in path.iterdir() if entry.is_dir())
        except OSError as exc:
            raise InstallIOError(f"{context} directory is not readable", path=str(path)) from exc
    if not url.endswith("/"):
        url = url + "/"
    html = safe_get(url, context=context, credentials=credentials, config=config).text
    return parse_index_page(html)


def download(url: str, target: Path, *, context: str = "artifact",
             credentials: Optional[Credentials] = None,
             config: Optional[TransportConfig] = None) -> Path:
    """Copy a remote or local file to ``target`` and return the target path."""
    target = Path(target)
    target.parent.mkdir(parents=True, exist_ok=True)
    if _scheme(url) in ("", "file"):
        source = local_path(url)
        try:
            shutil.copyfile(source, target)
        except OSError as exc:
            raise InstallIOError(f"{context} copy failed", path=str(source)) from exc
        return target

    res = safe_get(url, context=context, credentials=credentials, config=config, stream=True)
    tmp = target.with_name(target.name + ".part")
    try:
        with open(tmp, "wb") as fh:
            for chunk in res.iter_content(chunk_size=65536):
                if chunk:
                    fh.write(chunk)
        os.replace(tmp, target)
    except (OSError, requests.RequestException) as exc:
        tmp.unlink(missing_ok=True)
        raise InstallIOError(f"{context} download failed", path=safe_url(url)) from exc
    logger.debug("Downloaded %s to %s", safe_url(url), target)
    return target

"""Content type marker files.

Every content managed directory carries a hidden marker file holding the
name of its content type. The cleanup reads the markers back without access
to the descriptor that wrote them.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List

from common.errors import InstallIOError
from constants import Constants
from descriptor.models import ContentType

logger = logging.getLogger(__name__)


def marker_path(directory: Path) -> Path:
    return Path(directory) / Constants.CONTENT_MARKER_FILE


def write_marker(directory: Path, content_type: ContentType) -> bool:
    """Write the marker of ``directory``, creating the directory if needed.

    Returns:
        True if the marker file changed.
    """
    path = marker_path(directory)
    try:
        if path.is_file() and path.read_text(encoding="utf-8").strip() == content_type.value:
            return False
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content_type.value, encoding="utf-8")
    except OSError as exc:
        raise InstallIOError("Content marker can not be written", path=str(path)) from exc
    logger.debug("Marker %s set to %s", path, content_type.value)
    return True


def read_marker(directory: Path) -> ContentType:
    """Content type recorded for ``directory``; UNSPECIFIED if missing."""
    path = marker_path(directory)
    if not path.is_file():
        return ContentType.UNSPECIFIED
    try:
        return ContentType.from_string(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise InstallIOError("Content marker is not readable", path=str(path)) from exc


def scan_markers(directory: Path) -> List[ContentType]:
    """Content types of all markers in and below ``directory``."""
    found: List[ContentType] = []
    for root, _dirs, files in os.walk(directory):
        if Constants.CONTENT_MARKER_FILE in files:
            found.append(read_marker(Path(root)))
    return found


def requires_backup(directory: Path) -> bool:
    """True if removing ``directory`` could lose data.

    That is the case when its root has no marker or any marker in the tree
    names DATA or UNSPECIFIED content.
    """
    if not marker_path(directory).is_file():
        return True
    return any(ct.requires_backup for ct in scan_markers(directory))

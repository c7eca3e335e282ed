"""Symbolic link creation for declared link items."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from common.errors import InstallIOError, PathConflict
from .sync import WorkResult

logger = logging.getLogger(__name__)


def create_link(install_root: Path, name: str, target: str) -> WorkResult:
    """Create ``<install_root>/<name>`` pointing at ``target``.

    Relative targets are resolved against the install root. A link with a
    different target is replaced; a missing target only logs a warning.

    Raises:
        PathConflict: if ``name`` exists and is not a symbolic link.
    """
    install_root = Path(install_root)
    link = install_root / name
    target_path = Path(target) if os.path.isabs(target) else install_root / target
    result = WorkResult(operation=f"link:{name}", target=name)

    if link.is_symlink():
        if Path(os.readlink(link)) == target_path:
            return result
        try:
            link.unlink()
        except OSError as exc:
            raise InstallIOError("Link can not be replaced", path=str(link)) from exc
        result.deleted.append(name)
    elif link.exists():
        raise PathConflict(name, "existing file or directory", f"link to {target}")

    if not target_path.exists():
        logger.warning("The target '%s' of link '%s' does not exist!", target_path, link)
        return result

    try:
        link.parent.mkdir(parents=True, exist_ok=True)
        link.symlink_to(target_path, target_is_directory=target_path.is_dir())
    except OSError as exc:
        raise InstallIOError("Link can not be created", item=name, path=str(link)) from exc
    result.written.append(name)
    logger.info("Link '%s' -> '%s' created.", link, target_path)
    return result

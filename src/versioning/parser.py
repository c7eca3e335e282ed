"""Token parsing utilities for dependency coordinates."""

from typing import Optional, Tuple

from constants import Constants
from .models import Dependency


def tokenize_rightmost_colon(s: str) -> Tuple[str, Optional[str]]:
    """Return (identifier, spec or None) using the rightmost-colon rule."""
    s = s.strip()
    if ':' not in s:
        return s, None
    parts = s.rsplit(':', 1)
    identifier = parts[0].strip()
    spec_part = parts[1].strip() if len(parts) > 1 else ''
    spec = spec_part if spec_part else None
    return identifier, spec


def parse_coordinate(token: str) -> Dependency:
    """Parse ``group:module[:version]`` into a Dependency.

    A missing version means ``latest``.

    Raises:
        ValueError: if group or module is missing.
    """
    colon_count = token.count(':')
    if colon_count <= 1:
        identifier, version = token.strip(), None
    else:
        identifier, version = tokenize_rightmost_colon(token)

    group, _, module = identifier.partition(':')
    group, module = group.strip(), module.strip()
    if not group or not module:
        raise ValueError(f"Invalid coordinate '{token}'. Expected 'group:module[:version]'.")

    return Dependency(group=group, module=module, version=version or Constants.LATEST_VERSION)

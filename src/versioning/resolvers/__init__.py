"""Version resolvers for the supported repository layouts."""

from .base import VersionResolver
from .ivy import IvyVersionResolver
from .maven import MavenVersionResolver

__all__ = [
    "VersionResolver",
    "IvyVersionResolver",
    "MavenVersionResolver",
]

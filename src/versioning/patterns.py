"""Substitution of pattern-layout artifact paths.

Tokens are written in square brackets, e.g. ``[organisation]/[module]``.
A section in parentheses is optional: it is dropped when any token inside
it resolves to an empty string, otherwise the parentheses are removed.
"""
from __future__ import annotations

import re

REVISION_TOKEN = "[revision]"

_OPTIONAL = re.compile(r"\(([^()]*)\)")
_TOKEN = re.compile(r"\[([A-Za-z]+)\]")


def substitute(pattern: str, **tokens: str) -> str:
    """Replace all tokens of ``pattern`` with the given values.

    ``orgPath`` is derived from ``organisation`` (dots become slashes) unless
    passed explicitly. Unknown tokens are replaced with an empty string.
    """
    values = {k: (v or "") for k, v in tokens.items()}
    if "orgPath" not in values:
        values["orgPath"] = values.get("organisation", "").replace(".", "/")
    if "organization" not in values:
        values["organization"] = values.get("organisation", "")

    def _optional(match: "re.Match[str]") -> str:
        section = match.group(1)
        names = _TOKEN.findall(section)
        if any(not values.get(name) for name in names):
            return ""
        return section

    resolved = _OPTIONAL.sub(_optional, pattern)
    return _TOKEN.sub(lambda m: values.get(m.group(1), ""), resolved)


def version_listing_prefix(pattern: str, **tokens: str) -> str:
    """Return the substituted pattern part in front of the revision directory.

    Raises:
        ValueError: if the pattern has no revision token.
    """
    pos = pattern.find(REVISION_TOKEN)
    if pos < 0:
        raise ValueError(f"Pattern '{pattern}' does not contain {REVISION_TOKEN}.")
    prefix = pattern[:pos].rstrip("/")
    return substitute(prefix, **tokens)

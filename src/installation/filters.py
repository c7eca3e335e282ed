"""Content filters applied to CONFIGURATION files while they are copied."""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from common.errors import InstallIOError
from constants import Constants
from .patterns import PatternSet

logger = logging.getLogger(__name__)

_XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'
_PROPERTY_LINE = re.compile(r"^(\s*)((?:\\.|[^=:\s\\])+)(\s*[=:]\s*|\s+|$)(.*)$")


def replace_placeholders(text: str, mapping: Mapping[str, str],
                         begin: str = Constants.PLACEHOLDER_BEGIN,
                         end: str = Constants.PLACEHOLDER_END) -> str:
    """Replace ``<@key@>`` tokens; unknown keys are left untouched."""
    if not mapping or begin not in text:
        return text
    token = re.compile(re.escape(begin) + r"(.+?)" + re.escape(end))

    def _sub(match: "re.Match[str]") -> str:
        key = match.group(1).strip()
        return str(mapping[key]) if key in mapping else match.group(0)

    return token.sub(_sub, text)


def _is_continued(line: str) -> bool:
    stripped = line.rstrip("\r\n")
    return (len(stripped) - len(stripped.rstrip("\\"))) % 2 == 1


def override_properties(text: str, properties: Mapping[str, str]) -> str:
    """Set property values in a Java properties style document.

    Comments, blank lines, ordering and separators are kept. Keys missing
    from the document are appended at the end in the given order.
    """
    if not properties:
        return text
    newline = "\r\n" if "\r\n" in text else "\n"
    lines = text.splitlines()
    out: List[str] = []
    seen = set()
    skip_continuation = False

    for line in lines:
        if skip_continuation:
            skip_continuation = _is_continued(line)
            continue
        stripped = line.lstrip()
        match = None if not stripped or stripped[0] in "#!" else _PROPERTY_LINE.match(line)
        if match and match.group(2) in properties:
            indent, key, sep = match.group(1), match.group(2), match.group(3)
            if not sep.strip():
                sep = "="
            out.append(f"{indent}{key}{sep}{properties[key]}")
            seen.add(key)
            skip_continuation = _is_continued(line)
            continue
        out.append(line)

    for key, value in properties.items():
        if key not in seen:
            out.append(f"{key} = {value}")

    result = newline.join(out)
    if text.endswith(("\n", "\r\n")) or not text:
        result += newline
    return result


@dataclass
class ContentFilter:
    """A text transformation applied to files selected by ``patterns``.

    ``patterns`` are evaluated on paths relative to the install root.
    """
    name: str
    transform: Callable[[str], str]
    patterns: Optional[PatternSet] = None

    def applies_to(self, install_path: str) -> bool:
        return self.patterns is None or self.patterns.selects(install_path)


def placeholder_filter(mapping: Mapping[str, str]) -> ContentFilter:
    """Filter replacing configured placeholders in every file."""
    values = dict(mapping)
    return ContentFilter("placeholders", lambda text: replace_placeholders(text, values))


def full_content_filter(name: str, includes: Iterable[str],
                        transform: Callable[[str], str]) -> ContentFilter:
    """Filter handing the complete text of every matching file to ``transform``."""
    return ContentFilter(name, transform, PatternSet(includes=includes))


def xml_content_filter(name: str, includes: Iterable[str],
                       edit: Callable[[ET.Element], None]) -> ContentFilter:
    """Filter parsing matching files as XML and letting ``edit`` change the tree.

    Raises:
        InstallIOError: when a matching file is not well formed XML.
    """
    def _transform(text: str) -> str:
        try:
            root = ET.fromstring(text)
        except ET.ParseError as exc:
            raise InstallIOError(f"Unable to transform XML with filter '{name}': {exc}") from exc
        edit(root)
        body = ET.tostring(root, encoding="unicode") + "\n"
        if text.lstrip().startswith("<?xml"):
            return _XML_DECLARATION + body
        return body

    return ContentFilter(name, _transform, PatternSet(includes=includes))


def properties_filters(items) -> List[ContentFilter]:
    """Group property items by pattern into one filter per pattern."""
    grouped: Dict[str, Dict[str, str]] = {}
    for item in items:
        grouped.setdefault(item.pattern, {})[item.key] = item.value
    return [
        ContentFilter(f"properties:{pattern}",
                      lambda text, props=props: override_properties(text, props),
                      PatternSet(includes=[pattern]))
        for pattern, props in grouped.items()
    ]


@dataclass
class FilterChain:
    """Ordered filters of one install operation."""
    filters: List[ContentFilter] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.filters)

    def apply(self, install_path: str, data: bytes) -> Tuple[bytes, bool]:
        """Run all matching filters on ``data``.

        Returns:
            Tuple of (content, filtered); binary content is returned unchanged.
        """
        matching = [f for f in self.filters if f.applies_to(install_path)]
        if not matching:
            return data, False
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("Skipping filters for binary file %s", install_path)
            return data, False
        for content_filter in matching:
            text = content_filter.transform(text)
        return text.encode("utf-8"), True

"""
1.0 Sitemap Parser Module
Extracts <url> records and <sitemap> references from a streaming reader.

Key features:
- Generic element reduction: any subtree becomes text, a mapping, or None
- Extension elements (image:, news:, video:, ...) keyed by local name
- Reads exactly one element's subtree and leaves the reader after it
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from sitemap_iterator.filters import to_local_datetime
from sitemap_iterator.xml_reader import NodeType, StreamingXmlReader

logger = logging.getLogger(__name__)

ElementValue = Union[str, Dict[str, "ElementValue"], None]


@dataclass
class SitemapReference:
    """A <sitemap> entry of a sitemap index."""

    loc: Optional[str] = None
    lastmod: Optional[str] = None


@dataclass
class UrlEntry:
    """A <url> entry of a URL set, before filtering."""

    loc: Optional[str] = None
    lastmod: Optional[str] = None
    priority: Optional[float] = None
    extensions: Dict[str, ElementValue] = field(default_factory=dict)

    def to_record(self) -> Tuple[str, Dict[str, Any]]:
        """
        Build the (loc, data) pair exposed to callers.

        lastmod is converted to the local timezone; changefreq is always
        present, None when the sitemap leaves it out.
        """
        data: Dict[str, Any] = dict(self.extensions)
        data['priority'] = self.priority

        data['lastmod'] = None
        if self.lastmod is not None:
            try:
                data['lastmod'] = to_local_datetime(self.lastmod)
            except ValueError:
                logger.warning(f"Unparseable lastmod '{self.lastmod}' for {self.loc}")

        data.setdefault('changefreq', None)

        return self.loc, data


def _read(reader: StreamingXmlReader) -> bool:
    result = reader.read()
    reader.raise_for_error()
    return result


def _text(value: ElementValue) -> Optional[str]:
    # Known fields are plain text; nested markup in them is ignored
    return value if isinstance(value, str) else None


def read_element_value(reader: StreamingXmlReader) -> ElementValue:
    """
    2.0 Reduce the element the reader is positioned on to a value.

    Child elements produce a mapping of local name to reduced child value
    (a repeated name keeps the last value). Text-only elements produce the
    stripped text, or None when it is empty. Empty elements produce None.

    Args:
        reader: Reader positioned on an element start node

    Returns:
        str, dict, or None
    """
    if reader.node_type != NodeType.ELEMENT:
        return None

    depth = reader.depth
    value: Optional[str] = None
    children: Dict[str, ElementValue] = {}

    while _read(reader):
        if reader.node_type == NodeType.ELEMENT:
            name = reader.name
            children[name] = read_element_value(reader)
            continue

        if reader.node_type == NodeType.END_ELEMENT:
            if reader.depth == depth:
                break
            continue

        # Leaf text is normalized: surrounding whitespace dropped, blank means absent
        value = (reader.value or '').strip() or None

    if children:
        return children

    return value


def read_sitemap_reference(reader: StreamingXmlReader) -> SitemapReference:
    """
    3.0 Read a <sitemap> element of a sitemap index.

    Only loc and lastmod are read; other children are skipped unreduced.
    """
    reference = SitemapReference()
    depth = reader.depth

    while _read(reader):
        if reader.node_type == NodeType.END_ELEMENT and reader.depth == depth:
            break

        if reader.node_type != NodeType.ELEMENT:
            continue

        if reader.name == 'loc':
            reference.loc = _text(read_element_value(reader))
        elif reader.name == 'lastmod':
            reference.lastmod = _text(read_element_value(reader))
        else:
            reader.skip()
            reader.raise_for_error()

    return reference


def _parse_priority(value: Optional[str], loc: Optional[str]) -> Optional[float]:
    if value is None:
        return None

    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring invalid priority '{value}' for {loc}")
        return None


def read_url_entry(reader: StreamingXmlReader) -> UrlEntry:
    """
    4.0 Read a <url> element of a URL set.

    loc, lastmod and priority are taken as plain text; every other child is
    reduced with read_element_value() and stored under its local name.

    Args:
        reader: Reader positioned on a <url> start node

    Returns:
        UrlEntry (loc is None when the element has no <loc>)
    """
    entry = UrlEntry()
    priority = None
    depth = reader.depth

    while _read(reader):
        if reader.node_type == NodeType.END_ELEMENT and reader.depth == depth:
            break

        if reader.node_type != NodeType.ELEMENT:
            continue

        name = reader.name
        value = read_element_value(reader)

        if name == 'loc':
            entry.loc = _text(value)
        elif name == 'lastmod':
            entry.lastmod = _text(value)
        elif name == 'priority':
            priority = _text(value)
        else:
            entry.extensions[name] = value

    entry.priority = _parse_priority(priority, entry.loc)

    return entry

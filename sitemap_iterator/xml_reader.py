"""
1.0 Streaming XML Reader Module
Pull-based XML node reader over a single sitemap document.

Wraps lxml's iterparse so callers can step through one node at a time
(element start, text, element end) without building the whole tree. Parsed
elements are released as soon as their end event has been handed out.
"""

import logging
from collections import deque
from enum import IntEnum
from typing import Deque, List, Optional, Tuple

from lxml import etree
from urllib3.exceptions import HTTPError

from sitemap_iterator.exceptions import InvalidSitemapError
from sitemap_iterator.sitemap_fetcher import SitemapFetcher, SitemapSource

logger = logging.getLogger(__name__)

TEXT_NODE_NAME = "#text"


class NodeType(IntEnum):
    """Kinds of node events produced by StreamingXmlReader."""

    ELEMENT = 1
    TEXT = 3
    END_ELEMENT = 15


# (node_type, name, depth, value)
_Node = Tuple[NodeType, str, int, Optional[str]]


class StreamingXmlReader:
    """
    2.0 StreamingXmlReader Class
    Exposes the current node's name, node_type, depth and value after each
    successful read(). Errors are reported through last_error rather than
    raised, so the caller decides when to abort.
    """

    def __init__(self, source: SitemapSource, encoding: Optional[str] = None):
        """
        2.1 Initialize the reader over an opened source.

        Args:
            source: Opened sitemap stream
            encoding: Optional encoding override for the document
        """
        self.uri = source.uri
        self._source = source
        self._events = etree.iterparse(
            source.stream,
            events=("start", "end"),
            encoding=encoding,
            remove_comments=True,
            remove_pis=True,
            resolve_entities=False,
            no_network=True,
            huge_tree=True,
        )
        self._pending: Deque[_Node] = deque()
        # One flag per open element: has it seen a child element yet
        self._open_elements: List[bool] = []
        self._closed = False

        self.name: Optional[str] = None
        self.node_type: Optional[NodeType] = None
        self.depth: int = 0
        self.value: Optional[str] = None
        self.last_error: Optional[Exception] = None

    @classmethod
    def open(
        cls,
        uri: str,
        encoding: Optional[str] = None,
        fetcher: Optional[SitemapFetcher] = None,
    ) -> Optional["StreamingXmlReader"]:
        """
        2.2 Open a reader on the given URI.

        Returns:
            A reader positioned before the first node, or None on failure
        """
        fetcher = fetcher or SitemapFetcher()
        source = fetcher.open_stream(uri)
        if source is None:
            return None

        try:
            return cls(source, encoding=encoding)
        except LookupError as e:
            source.close()
            logger.error(f"Unknown encoding '{encoding}' for {uri}: {e}")
            return None

    def read(self) -> bool:
        """
        2.3 Advance to the next node.

        Returns:
            True if positioned on a new node, False at end of stream or on
            error (check last_error)
        """
        self.last_error = None

        if self._pending:
            self._set_node(*self._pending.popleft())
            return True

        if self._events is None:
            return False

        try:
            event, element = next(self._events)
        except StopIteration:
            self._events = None
            return False
        except (etree.XMLSyntaxError, OSError, LookupError, ValueError, HTTPError) as e:
            # HTTPError and ValueError come from a broken or closed network body
            self._events = None
            self.last_error = e
            return False

        name = etree.QName(element).localname

        if event == "start":
            if self._open_elements:
                self._open_elements[-1] = True
            depth = len(self._open_elements)
            self._open_elements.append(False)
            self._set_node(NodeType.ELEMENT, name, depth, None)
            return True

        had_children = self._open_elements.pop()
        depth = len(self._open_elements)
        text = element.text

        self._release(element)

        if not had_children and text is not None:
            self._set_node(NodeType.TEXT, TEXT_NODE_NAME, depth + 1, text)
            self._pending.append((NodeType.END_ELEMENT, name, depth, None))
        else:
            self._set_node(NodeType.END_ELEMENT, name, depth, None)
        return True

    def skip(self) -> bool:
        """
        2.4 Skip the rest of the element the reader is positioned on.

        Leaves the reader on that element's end node.

        Returns:
            False if the stream ended or failed before the end node
        """
        if self.node_type != NodeType.ELEMENT:
            return True

        depth = self.depth
        while self.read():
            if self.node_type == NodeType.END_ELEMENT and self.depth == depth:
                return True
        return False

    def raise_for_error(self) -> None:
        """
        2.5 Raise InvalidSitemapError if the last read produced an error.
        """
        error = self.last_error
        if error is None:
            return

        if isinstance(error, etree.XMLSyntaxError):
            message = error.msg or str(error)
            code = error.code or 0
        else:
            message = str(error)
            code = getattr(error, "errno", None) or 0

        raise InvalidSitemapError(message, code, uri=self.uri)

    def close(self) -> bool:
        """2.6 Close the reader and its underlying stream."""
        if self._closed:
            return True

        self._closed = True
        self._events = None
        self._pending.clear()
        try:
            self._source.close()
        except OSError as e:
            logger.warning(f"Error closing sitemap {self.uri}: {e}")
            return False
        return True

    def _set_node(self, node_type: NodeType, name: str, depth: int, value: Optional[str]) -> None:
        self.node_type = node_type
        self.name = name
        self.depth = depth
        self.value = value

    @staticmethod
    def _release(element) -> None:
        element.clear(keep_tail=True)
        parent = element.getparent()
        if parent is None:
            return
        while element.getprevious() is not None:
            del parent[0]

"""
1.0 Traversal Module
Walks a sitemap (or a tree of sitemap indexes) one URL record at a time.

Key features:
- Explicit stack of readers: one frame per open sitemap document
- Sub-sitemaps opened lazily, in document order, only once reached
- Sub-sitemaps whose lastmod fails the date filter are never fetched
- Resumable: each find_next() call continues where the previous one stopped
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from sitemap_iterator.filters import FilterPolicy
from sitemap_iterator.sitemap_fetcher import SitemapFetcher
from sitemap_iterator.sitemap_parser import read_sitemap_reference, read_url_entry
from sitemap_iterator.xml_reader import NodeType, StreamingXmlReader

logger = logging.getLogger(__name__)

CONTAINER_ELEMENTS = ("sitemapindex", "urlset")

UrlRecord = Tuple[str, Dict[str, Any]]


class ReaderStack:
    """
    2.0 ReaderStack Class
    Owns the readers of all currently open sitemap documents. Only the top
    reader is read from.
    """

    def __init__(
        self,
        encoding: Optional[str] = None,
        fetcher: Optional[SitemapFetcher] = None,
        max_depth: Optional[int] = None,
    ):
        """
        2.1 Initialize an empty stack.

        Args:
            encoding: Encoding override passed to every reader
            fetcher: Fetcher used to open documents
            max_depth: Maximum number of frames, or None for no limit
        """
        self.encoding = encoding
        self.fetcher = fetcher or SitemapFetcher()
        self.max_depth = max_depth
        self._frames: List[StreamingXmlReader] = []

    def __len__(self) -> int:
        return len(self._frames)

    def __bool__(self) -> bool:
        return bool(self._frames)

    @property
    def top(self) -> StreamingXmlReader:
        return self._frames[-1]

    def push(self, uri: str) -> bool:
        """
        2.2 Open a reader on uri and make it the top frame.

        Returns:
            True on success, False if the document could not be opened or the
            depth limit has been reached
        """
        if self.max_depth is not None and len(self._frames) >= self.max_depth:
            logger.warning(f"Maximum sitemap depth {self.max_depth} reached, skipping: {uri}")
            return False

        reader = StreamingXmlReader.open(uri, encoding=self.encoding, fetcher=self.fetcher)
        if reader is None:
            return False

        self._frames.append(reader)
        logger.debug(f"Opened sitemap (depth {len(self._frames)}): {uri}")
        return True

    def pop(self) -> bool:
        """2.3 Close the top reader and remove it from the stack."""
        if not self._frames:
            return False

        reader = self._frames.pop()
        logger.debug(f"Closing sitemap (depth {len(self._frames) + 1}): {reader.uri}")
        return reader.close()

    def close_all(self) -> bool:
        """2.4 Close every reader, top first."""
        while self._frames:
            if not self.pop():
                return False
        return True


class TraversalEngine:
    """
    3.0 TraversalEngine Class
    Pulls nodes from the top of a ReaderStack until the next URL record that
    passes the filter policy.
    """

    def __init__(self, stack: ReaderStack, policy: FilterPolicy):
        self.stack = stack
        self.policy = policy

    def find_next(self) -> Optional[UrlRecord]:
        """
        3.1 Read forward to the next accepted URL record.

        Returns:
            (loc, data) of the next record, or None once every document on the
            stack is exhausted

        Raises:
            InvalidSitemapError: if a reader reports an error
        """
        while self.stack:
            reader = self.stack.top

            if not reader.read():
                reader.raise_for_error()
                self.stack.pop()
                continue

            reader.raise_for_error()

            name = reader.name

            if name in CONTAINER_ELEMENTS:
                continue

            if name == "sitemap":
                if reader.node_type == NodeType.END_ELEMENT:
                    self.stack.pop()
                else:
                    self._open_sitemap(reader)
                continue

            if name == "url":
                if reader.node_type != NodeType.ELEMENT:
                    continue

                record = self._read_url(reader)
                if record is not None:
                    return record

        return None

    def _open_sitemap(self, reader: StreamingXmlReader) -> None:
        """3.2 Read a <sitemap> reference and push its document if it qualifies."""
        reference = read_sitemap_reference(reader)

        if reference.loc is None:
            logger.debug(f"Skipping <sitemap> without <loc> in {reader.uri}")
            return

        if self.policy.skip_lastmod(reference.lastmod):
            logger.debug(f"Skipping unmodified sitemap {reference.loc} (lastmod={reference.lastmod})")
            return

        if not self.stack.push(reference.loc):
            logger.warning(f"Could not open sub-sitemap {reference.loc}. Skipping.")

    def _read_url(self, reader: StreamingXmlReader) -> Optional[UrlRecord]:
        """3.3 Read a <url> element; None if it is malformed or filtered out."""
        entry = read_url_entry(reader)

        if entry.loc is None:
            logger.debug(f"Skipping <url> without <loc> in {reader.uri}")
            return None

        if self.policy.skip_priority(entry.priority) or self.policy.skip_lastmod(entry.lastmod):
            logger.debug(f"Filtered out {entry.loc} (priority={entry.priority}, lastmod={entry.lastmod})")
            return None

        return entry.to_record()

"""
1.0 Sitemap Iterator Module
Public cursor over the URLs of an XML sitemap or sitemap index.

Usage:
    it = SitemapIterator()
    if it.open("https://www.example.com/sitemap.xml", {"minimum_priority": 0.5}):
        for url, data in it:
            ...
        it.close()
"""

import logging
from typing import Any, Dict, Iterator, Optional

from sitemap_iterator.config import FETCHER_OPTIONS, normalize_options
from sitemap_iterator.filters import FilterPolicy
from sitemap_iterator.sitemap_fetcher import SitemapFetcher
from sitemap_iterator.traversal import ReaderStack, TraversalEngine, UrlRecord

logger = logging.getLogger(__name__)


class SitemapIterator:
    """
    2.0 SitemapIterator Class
    Cursor with valid() / key() / current() / advance() / reset(). Iterating
    the object with a for loop always starts over from the root document.

    Not thread-safe: one iterator, one traversal.
    """

    def __init__(self, fetcher: Optional[SitemapFetcher] = None):
        """
        2.1 Create an unopened iterator.

        Args:
            fetcher: Fetcher used to open documents; built from the options
                passed to open() when not given
        """
        self._fetcher = fetcher
        # Fetcher built by open(); closed along with the documents
        self._owned_fetcher: Optional[SitemapFetcher] = None
        self.uri: Optional[str] = None
        self.options: Dict[str, Any] = {}

        self._stack: Optional[ReaderStack] = None
        self._engine: Optional[TraversalEngine] = None

        self._key: Optional[str] = None
        self._current: Optional[Dict[str, Any]] = None
        self._valid = False
        self._primed = False

    def open(self, uri: str, options: Optional[Dict[str, Any]] = None) -> bool:
        """
        2.2 Open the sitemap at uri for iteration.

        The options dictionary can contain the following keys:

        - modified_date_time: skip URLs (and sub-sitemaps) not modified
          after this date
        - minimum_priority: skip URLs with a priority lower than this value
        - encoding: encoding of the sitemap documents
        - max_depth: maximum sitemap index nesting (default: unlimited)
        - user_agent, timeout, max_retries, download_delay: HTTP settings

        Returns:
            True on success, False if the root document could not be opened

        Raises:
            ValueError: if an option has an invalid value
        """
        if self._stack is not None:
            self.close()

        self.uri = uri
        self.options = normalize_options(options)

        fetcher = self._fetcher
        if fetcher is None:
            fetcher = SitemapFetcher(config={key: self.options.get(key) for key in FETCHER_OPTIONS})
            self._owned_fetcher = fetcher

        self._stack = ReaderStack(
            encoding=self.options["encoding"],
            fetcher=fetcher,
            max_depth=self.options["max_depth"],
        )
        self._engine = TraversalEngine(self._stack, FilterPolicy.from_options(self.options))

        self._key = None
        self._current = None
        self._primed = False

        logger.info(f"Opening sitemap: {uri}")
        self._valid = self._stack.push(uri)
        return self._valid

    def close(self) -> bool:
        """
        2.3 Close every open sitemap document. Safe to call repeatedly.

        A fetcher created by open() is closed too; an injected one is left
        to its owner.
        """
        if self._stack is None:
            return True

        closed = self._stack.close_all()

        if self._owned_fetcher is not None:
            self._owned_fetcher.close()
            self._owned_fetcher = None

        return closed

    def valid(self) -> bool:
        """2.4 True while the cursor is on a record."""
        return self._valid

    def key(self) -> Optional[str]:
        """2.5 URL of the current record."""
        return self._key

    def current(self) -> Optional[Dict[str, Any]]:
        """2.6 Data of the current record."""
        return self._current

    def advance(self) -> None:
        """
        2.7 Move to the next record.

        Raises:
            InvalidSitemapError: if a document is malformed
        """
        self._ensure_open()

        record: Optional[UrlRecord] = self._engine.find_next()
        if record is None:
            self._valid = False
            logger.debug(f"Finished sitemap: {self.uri}")
            return

        self._key, self._current = record
        self._valid = True

    def reset(self) -> None:
        """
        2.8 Move to the first record.

        The first call only reads the first record. Later calls close every
        document and start again from the root sitemap.
        """
        self._ensure_open()

        if self._primed:
            self._stack.close_all()
            if not self._stack.push(self.uri):
                self._valid = False
                return
        else:
            self._primed = True

        self.advance()

    def __iter__(self) -> Iterator[UrlRecord]:
        self.reset()
        while self._valid:
            yield self._key, self._current
            self.advance()

    def __enter__(self) -> "SitemapIterator":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def _ensure_open(self) -> None:
        if self._stack is None:
            raise RuntimeError("SitemapIterator is not open; call open() first")


def iter_sitemap(uri: str, **options: Any) -> Iterator[UrlRecord]:
    """
    3.0 Yield (url, data) pairs from the sitemap at uri.

    Keyword arguments are the options accepted by SitemapIterator.open().
    Nothing is yielded if the root document cannot be opened.
    """
    iterator = SitemapIterator()
    if not iterator.open(uri, options):
        logger.error(f"Could not open sitemap: {uri}")
        return

    with iterator:
        yield from iterator

"""
1.0 Sitemap Fetcher Module
Opens sitemap URIs as binary streams for the streaming reader.

Key features:
- Local paths and file:// URIs opened directly from disk
- HTTP(S) responses streamed (never buffered whole) through a requests Session
- Automatic retry on transient failures (429, 500, 502, 503, 504)
- Transparent gzip decompression (sitemap.xml.gz)
- Simple download delay for politeness between HTTP requests
"""

import gzip
import io
import logging
import time
from contextlib import ExitStack
from typing import Any, BinaryIO, Dict, Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "SitemapIterator/1.0"
GZIP_MAGIC = b"\x1f\x8b"


class SitemapSource:
    """
    2.0 An opened sitemap stream and the resources backing it.

    Closing the source closes the decompressor, the underlying file or HTTP
    response, in reverse order of opening.
    """

    def __init__(self, uri: str, stream: BinaryIO, resources: ExitStack):
        self.uri = uri
        self.stream = stream
        self._resources = resources

    def close(self) -> None:
        self._resources.close()


class SitemapFetcher:
    """
    3.0 SitemapFetcher Class
    Opens sitemap documents from disk or over HTTP with built-in retry logic.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        3.1 Initialize the SitemapFetcher with retry strategy.

        Args:
            config: Configuration dictionary with optional keys:
                - user_agent: Custom user agent string
                - timeout: Request timeout in seconds (default: 30)
                - max_retries: Number of retry attempts (default: 3)
                - download_delay: Delay between HTTP requests in seconds (default: 0)
        """
        config = config or {}

        self.user_agent = config.get("user_agent") or DEFAULT_USER_AGENT
        if not isinstance(self.user_agent, str) or not self.user_agent.strip():
            self.user_agent = DEFAULT_USER_AGENT
            logger.warning(f"Invalid user_agent in config. Using default: {self.user_agent}")

        self.timeout = config.get("timeout") or 30
        self.max_retries = config.get("max_retries")
        if self.max_retries is None:
            self.max_retries = 3
        self.download_delay = float(config.get("download_delay") or 0.0)

        # 3.1.1 Track requests for delay logic
        self.request_count = 0
        self.last_request_time = 0.0

        self.session = self._create_session_with_retries()

        logger.debug(
            f"SitemapFetcher initialized: "
            f"User-Agent={self.user_agent[:50]}, "
            f"timeout={self.timeout}s, "
            f"delay={self.download_delay}s"
        )

    def _create_session_with_retries(self) -> requests.Session:
        """
        3.2 Create a requests Session with automatic retry logic.

        Retry strategy:
        - Retries on: 429 (rate limit), 500, 502, 503, 504 (server errors)
        - Backoff: 1s, 2s, 4s between retries (exponential)
        - Also retries on connection errors
        """
        session = requests.Session()

        retry_strategy = Retry(
            total=self.max_retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET"],
            raise_on_status=False,
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        session.headers.update({"User-Agent": self.user_agent})

        return session

    def _apply_politeness_delay(self) -> None:
        """3.3 Apply delay between HTTP requests for politeness."""
        if self.request_count == 0:
            self.request_count += 1
            self.last_request_time = time.time()
            return

        elapsed = time.time() - self.last_request_time
        wait_time = max(0.0, self.download_delay - elapsed)

        if wait_time > 0:
            time.sleep(wait_time)

        self.request_count += 1
        self.last_request_time = time.time()

    def open_stream(self, uri: str) -> Optional[SitemapSource]:
        """
        3.4 Open a sitemap URI as a binary stream.

        Args:
            uri: A local path, file:// URI, or http(s):// URL

        Returns:
            SitemapSource if the document could be opened, None otherwise
        """
        if not uri or not isinstance(uri, str):
            logger.error(f"Invalid sitemap URI: {uri!r}")
            return None

        parsed = urlparse(uri)
        scheme = parsed.scheme.lower()

        if scheme in ("http", "https"):
            return self._open_http(uri)

        if scheme == "file":
            path = url2pathname(parsed.path)
        elif len(scheme) > 1:
            # Single letter schemes are Windows drive letters
            logger.error(f"Unsupported URI scheme '{scheme}' for sitemap: {uri}")
            return None
        else:
            path = uri

        return self._open_file(uri, path)

    def _open_file(self, uri: str, path: str) -> Optional[SitemapSource]:
        """3.5 Open a sitemap stored on the local filesystem."""
        resources = ExitStack()
        try:
            stream = resources.enter_context(open(path, "rb"))
            stream = self._maybe_decompress(stream, resources)
        except OSError as e:
            resources.close()
            logger.error(f"Could not open sitemap file {path}: {e}")
            return None

        logger.info(f"Opened sitemap file: {path}")
        return SitemapSource(uri, stream, resources)

    def _open_http(self, uri: str) -> Optional[SitemapSource]:
        """3.6 Stream a sitemap over HTTP(S); retries are handled by the adapter."""
        self._apply_politeness_delay()

        logger.info(f"Fetching sitemap: {uri}")

        try:
            response = self.session.get(uri, timeout=self.timeout, stream=True)
        except requests.exceptions.Timeout:
            logger.error(f"Timeout fetching {uri} after {self.timeout}s")
            return None
        except requests.exceptions.ConnectionError as e:
            logger.error(f"Connection error fetching {uri}: {e}")
            return None
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error fetching {uri}: {e}")
            return None

        if response.status_code != 200:
            logger.error(
                f"Failed to fetch {uri}: "
                f"status={response.status_code} after {self.max_retries} retries"
            )
            response.close()
            return None

        resources = ExitStack()
        resources.callback(response.close)

        # Honour Content-Encoding; a served .xml.gz body is handled below
        response.raw.decode_content = True
        # The parser reads again after the body ends; urllib3 must not close the stream first
        response.raw.auto_close = False
        try:
            stream = self._maybe_decompress(io.BufferedReader(response.raw), resources)
        except OSError as e:
            resources.close()
            logger.error(f"Could not read response body from {uri}: {e}")
            return None

        logger.info(f"Streaming {uri} (status={response.status_code})")
        return SitemapSource(uri, stream, resources)

    @staticmethod
    def _maybe_decompress(stream: BinaryIO, resources: ExitStack) -> BinaryIO:
        """3.7 Wrap the stream in a gzip decompressor when it starts with the gzip magic."""
        if stream.peek(2)[:2] != GZIP_MAGIC:
            return stream

        logger.debug("Detected gzip-compressed sitemap")
        return resources.enter_context(gzip.GzipFile(fileobj=stream, mode="rb"))

    def close(self) -> None:
        self.session.close()

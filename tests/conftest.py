import gzip
from typing import List, Optional

import pytest

from sitemap_iterator.sitemap_fetcher import SitemapFetcher, SitemapSource


class RecordingFetcher(SitemapFetcher):
    """Fetcher that remembers every URI it was asked to open."""

    def __init__(self, config=None):
        super().__init__(config)
        self.opened: List[str] = []

    def open_stream(self, uri: str) -> Optional[SitemapSource]:
        self.opened.append(uri)
        return super().open_stream(uri)


@pytest.fixture
def write_sitemap(tmp_path):
    """Write XML text to a file under tmp_path and return its path."""

    def _write(name: str, content, compress: bool = False) -> str:
        data = content.encode("utf-8") if isinstance(content, str) else content
        if compress:
            data = gzip.compress(data)
        path = tmp_path / name
        path.write_bytes(data)
        return str(path)

    return _write


@pytest.fixture
def recording_fetcher():
    fetcher = RecordingFetcher()
    yield fetcher
    fetcher.close()

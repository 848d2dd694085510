"""
Sitemap Iterator - Source Package

Modules:
- iterator: SitemapIterator cursor and iter_sitemap() generator
- traversal: Reader stack and sitemap index traversal
- sitemap_parser: <url> / <sitemap> element reading
- xml_reader: Streaming XML node reader (lxml)
- sitemap_fetcher: Opening sitemap files and URLs with retry logic
- filters: lastmod / priority filtering
- config: Option defaults, validation and loading
- cli: Command line entry point
"""

from sitemap_iterator.exceptions import InvalidSitemapError
from sitemap_iterator.iterator import SitemapIterator, iter_sitemap

__version__ = "1.0.0"

__all__ = ["InvalidSitemapError", "SitemapIterator", "iter_sitemap"]

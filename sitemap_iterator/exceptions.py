"""
Exceptions raised while traversing a sitemap.
"""

from typing import Optional


class InvalidSitemapError(RuntimeError):
    """
    Raised when reading an XML sitemap produces an error.

    Carries the underlying reader message and error code, and the URI of the
    document that failed.
    """

    name = "Invalid Sitemap"

    def __init__(self, message: str, code: int = 0, uri: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.uri = uri

    def __str__(self) -> str:
        if self.uri:
            return f"{self.message} (code={self.code}, uri={self.uri})"
        return f"{self.message} (code={self.code})"

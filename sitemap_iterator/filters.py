"""
1.0 Filter Module
Date/priority thresholds applied to sitemap URLs and sitemap references.

Key features:
- lastmod values compared in UTC at one-second precision
- "Modified since" semantics: a lastmod equal to the threshold is skipped
- Records without a priority or lastmod are never filtered on that field
"""

import logging
from datetime import datetime
from typing import Any, Optional

import pandas as pd

logger = logging.getLogger(__name__)

# 1.1 Fixed-precision representation used for lastmod comparisons
COMPARABLE_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_datetime(value: Any) -> pd.Timestamp:
    """
    2.1 Parse a W3C datetime (or datetime-like object) into a UTC Timestamp.

    Values without a timezone are taken to be in the local system timezone.

    Raises:
        ValueError: if the value cannot be parsed
    """
    timestamp = pd.Timestamp(value)
    if pd.isna(timestamp):
        raise ValueError(f"Not a datetime: {value!r}")

    if timestamp.tzinfo is None:
        timestamp = pd.Timestamp(timestamp.to_pydatetime().astimezone())

    return timestamp.tz_convert("UTC")


def to_comparable(value: Any) -> str:
    """2.2 Format a datetime-like value as a UTC string that sorts chronologically."""
    return parse_datetime(value).strftime(COMPARABLE_FORMAT)


def to_local_datetime(value: Any) -> datetime:
    """2.3 Convert a datetime-like value to an aware datetime in the local timezone."""
    return parse_datetime(value).to_pydatetime().astimezone()


class FilterPolicy:
    """
    3.0 FilterPolicy Class
    Decides whether a URL or sitemap reference should be skipped.
    """

    def __init__(
        self,
        modified_date_time: Optional[str] = None,
        minimum_priority: Optional[float] = None,
    ):
        """
        3.1 Initialize the policy.

        Args:
            modified_date_time: UTC threshold in COMPARABLE_FORMAT, or None
            minimum_priority: Lowest priority kept, or None
        """
        self.modified_date_time = modified_date_time
        self.minimum_priority = minimum_priority

    @classmethod
    def from_options(cls, options: dict) -> "FilterPolicy":
        """3.2 Build a policy from normalized options."""
        return cls(
            modified_date_time=options.get("modified_date_time"),
            minimum_priority=options.get("minimum_priority"),
        )

    def skip_priority(self, priority: Optional[float]) -> bool:
        """3.3 True if the priority is below the configured minimum."""
        if priority is None or self.minimum_priority is None:
            return False

        return priority < self.minimum_priority

    def skip_lastmod(self, lastmod: Optional[str]) -> bool:
        """
        3.4 True if lastmod is not strictly after the configured threshold.
        """
        if lastmod is None or self.modified_date_time is None:
            return False

        try:
            comparable = to_comparable(lastmod)
        except ValueError:
            logger.warning(f"Ignoring unparseable lastmod '{lastmod}' for date filtering")
            return False

        return comparable <= self.modified_date_time

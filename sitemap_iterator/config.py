import json
import logging
import os
from datetime import date, datetime
from numbers import Real
from typing import Any, Dict, Optional

import pandas as pd

from sitemap_iterator.filters import to_comparable

logger = logging.getLogger(__name__)

# Options understood by SitemapIterator.open()
DEFAULT_OPTIONS: Dict[str, Any] = {
    "modified_date_time": None,
    "minimum_priority": None,
    "encoding": None,
    "max_depth": None,
}

# Passed through to SitemapFetcher
FETCHER_OPTIONS = ("user_agent", "timeout", "max_retries", "download_delay")


def validate_options(options: Dict[str, Any]) -> bool:
    """Validates the structure and content of an options dictionary."""
    if not isinstance(options, dict):
        logger.error("Options must be a dictionary.")
        return False

    for key in options:
        if key not in DEFAULT_OPTIONS and key not in FETCHER_OPTIONS:
            logger.warning(f"Unknown option '{key}' will be ignored.")

    dt = options.get("modified_date_time")
    if dt is not None and not isinstance(dt, (str, datetime, date, pd.Timestamp)):
        logger.error("'modified_date_time' must be a date string, datetime or date.")
        return False

    priority = options.get("minimum_priority")
    if priority is not None and (isinstance(priority, bool) or not isinstance(priority, (Real, str))):
        logger.error("'minimum_priority' must be a number.")
        return False

    encoding = options.get("encoding")
    if encoding is not None and (not isinstance(encoding, str) or not encoding.strip()):
        logger.error("'encoding' must be a non-empty string.")
        return False

    max_depth = options.get("max_depth")
    if max_depth is not None and (isinstance(max_depth, bool) or not isinstance(max_depth, int) or max_depth < 1):
        logger.error("'max_depth' must be a positive integer.")
        return False

    for key in ("timeout", "download_delay"):
        value = options.get(key)
        if value is not None and (isinstance(value, bool) or not isinstance(value, Real) or value < 0):
            logger.error(f"'{key}' must be a non-negative number.")
            return False

    retries = options.get("max_retries")
    if retries is not None and (isinstance(retries, bool) or not isinstance(retries, int) or retries < 0):
        logger.error("'max_retries' must be a non-negative integer.")
        return False

    return True


def normalize_options(options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Merges options over the defaults and normalizes the filter thresholds.

    modified_date_time becomes a UTC string comparable with lastmod values,
    minimum_priority becomes a float.

    Raises:
        ValueError: if an option has an invalid value
    """
    options = {} if options is None else options
    if not validate_options(options):
        raise ValueError(f"Invalid sitemap options: {options!r}")

    normalized = {**DEFAULT_OPTIONS, **options}

    if normalized["modified_date_time"]:
        try:
            normalized["modified_date_time"] = to_comparable(normalized["modified_date_time"])
        except ValueError as e:
            raise ValueError(f"Invalid modified_date_time: {options['modified_date_time']!r}") from e
    else:
        normalized["modified_date_time"] = None

    if normalized["minimum_priority"] is not None:
        try:
            normalized["minimum_priority"] = float(normalized["minimum_priority"])
        except ValueError as e:
            raise ValueError(f"Invalid minimum_priority: {options['minimum_priority']!r}") from e

    return normalized


def load_options(path: str) -> Optional[Dict[str, Any]]:
    """Loads sitemap options from a JSON file."""
    if not os.path.exists(path):
        logger.error(f"Options file not found: {path}")
        return None
    try:
        with open(path, 'r') as f:
            options = json.load(f)
        logger.info(f"Successfully loaded options from {path}")
    except json.JSONDecodeError as e:
        logger.error(f"Error decoding JSON from {path}: {e}")
        return None
    except OSError as e:
        logger.error(f"Could not read options file {path}: {e}")
        return None

    if not validate_options(options):
        return None
    return options

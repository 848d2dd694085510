"""
1.0 Command Line Module
Streams the URLs of a sitemap (or sitemap index) to JSON Lines or CSV.

Key features:
- JSON Lines output written as records arrive (constant memory)
- CSV output through pandas, with extension data flattened into columns
- Date, priority and depth filters from flags or a JSON options file
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional, TextIO

import pandas as pd

from sitemap_iterator.config import load_options
from sitemap_iterator.exceptions import InvalidSitemapError
from sitemap_iterator.iterator import SitemapIterator

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

EXIT_OK = 0
EXIT_OPEN_FAILED = 1
EXIT_INVALID_SITEMAP = 2

# 1.1 Column order for CSV output; extension columns follow
BASE_COLUMNS = ["loc", "lastmod", "changefreq", "priority"]


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """2.0 Configure root logging (stderr, plus an optional log file)."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    """3.0 Define the command line interface."""
    parser = argparse.ArgumentParser(
        prog="sitemap-iterator",
        description="Stream the URLs listed in an XML sitemap or sitemap index.",
    )
    parser.add_argument("uri", help="Path, file:// URI or http(s):// URL of the sitemap")
    parser.add_argument("--since", dest="modified_date_time",
                        help="Only URLs modified after this date (e.g. 2024-01-01T00:00:00+00:00)")
    parser.add_argument("--min-priority", dest="minimum_priority", type=float,
                        help="Skip URLs with a lower priority")
    parser.add_argument("--encoding", help="Override the document encoding")
    parser.add_argument("--max-depth", type=int, help="Maximum sitemap index nesting")
    parser.add_argument("--config", help="JSON file with iterator options")
    parser.add_argument("--format", choices=["jsonl", "csv"], default="jsonl", help="Output format")
    parser.add_argument("--output", "-o", help="Output file (default: stdout)")
    parser.add_argument("--limit", type=int, help="Stop after this many URLs")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    parser.add_argument("--log-file", help="Also write logs to this file")
    return parser


def collect_options(args: argparse.Namespace) -> Optional[Dict[str, Any]]:
    """
    4.0 Merge options from --config with command line flags.

    Flags win over values from the options file.
    """
    options: Dict[str, Any] = {}
    if args.config:
        loaded = load_options(args.config)
        if loaded is None:
            return None
        options.update(loaded)

    for key in ("modified_date_time", "minimum_priority", "encoding", "max_depth"):
        value = getattr(args, key)
        if value is not None:
            options[key] = value

    return options


def _to_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def write_jsonl(iterator: SitemapIterator, out: TextIO, limit: Optional[int] = None) -> int:
    """5.0 Write one JSON object per URL as the sitemap is read."""
    count = 0
    for url, data in iterator:
        out.write(json.dumps({"loc": url, **data}, default=_to_json) + "\n")
        count += 1
        if limit is not None and count >= limit:
            break
    return count


def write_csv(iterator: SitemapIterator, out: TextIO, limit: Optional[int] = None) -> int:
    """
    5.1 Write URLs as CSV.

    Nested extension values are flattened into dotted columns
    (e.g. image.loc). All rows are held in memory for the DataFrame.
    """
    rows = []
    for url, data in iterator:
        rows.append({"loc": url, **data})
        if limit is not None and len(rows) >= limit:
            break

    df = pd.json_normalize(rows) if rows else pd.DataFrame(columns=BASE_COLUMNS)
    extra = sorted(c for c in df.columns if c not in BASE_COLUMNS)
    df = df.reindex(columns=BASE_COLUMNS + extra)
    df.to_csv(out, index=False)
    return len(rows)


def main(argv: Optional[List[str]] = None) -> int:
    """
    6.0 Entry point.

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    options = collect_options(args)
    if options is None:
        logger.error("Failed to load options. Exiting.")
        return EXIT_OPEN_FAILED

    iterator = SitemapIterator()
    try:
        opened = iterator.open(args.uri, options)
    except ValueError as e:
        logger.error(str(e))
        return EXIT_OPEN_FAILED

    if not opened:
        logger.error(f"Could not open sitemap: {args.uri}")
        return EXIT_OPEN_FAILED

    writer = write_csv if args.format == "csv" else write_jsonl
    out = open(args.output, "w", newline="", encoding="utf-8") if args.output else sys.stdout

    try:
        with iterator:
            count = writer(iterator, out, args.limit)
    except InvalidSitemapError as e:
        logger.error(f"Invalid sitemap: {e}")
        return EXIT_INVALID_SITEMAP
    finally:
        if out is not sys.stdout:
            out.close()

    logger.info(f"Wrote {count} URLs from {args.uri}")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

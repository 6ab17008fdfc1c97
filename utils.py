#!/usr/bin/env python3
"""
Crawler Utilities

Standardized run logging and small formatting helpers shared by the
crawler modules.
"""

import logging
import re
import time
from datetime import datetime, timezone
from typing import Optional

LOGGER_NAME = "bsky_crawler"

_TIMESTAMP_SEPARATORS = re.compile(r"[:T\-Z]")


class IsoFormatter(logging.Formatter):
    """Formatter that stamps each line with an ISO-8601 UTC timestamp."""

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def setup_logging(log_file: Optional[str] = "runtime.log", verbose: bool = False) -> logging.Logger:
    """Attach an append-only file handler to the crawler logger.

    FileHandler flushes after every record, so each line is on disk before
    the next event happens.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_file:
        handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        handler.setFormatter(IsoFormatter("%(asctime)s - %(message)s"))
        logger.addHandler(handler)
    else:
        logger.addHandler(logging.NullHandler())

    logger.propagate = False
    return logger


class RunLogger:
    """Run log for one crawl: API calls, shard lifecycle and errors."""

    def __init__(self, tool_name: str = "PostsCrawler", logger: Optional[logging.Logger] = None):
        self.tool_name = tool_name
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.start_time = time.time()

    def info(self, message: str):
        self.logger.info(message)

    def debug(self, message: str):
        self.logger.debug(message)

    def warning(self, message: str):
        self.logger.warning(message)

    def error(self, message: str, exc_info: bool = False):
        self.logger.error(message, exc_info=exc_info)

    def api_call(self, url: str):
        """Log the resolved request before it is sent."""
        self.logger.info(f"API call: {url}")

    def page_received(self, window, cursor: Optional[str], count: int):
        self.logger.info(
            f"API call for the interval {window.since_iso()} - {window.until_iso()}: "
            f"cursor={cursor}, returned {count} posts."
        )

    def interval(self, window):
        self.logger.info(f"Processing interval: {window.since_iso()} to {window.until_iso()}")

    def shard_event(self, message: str, path: str):
        self.logger.info(f"{message}: {path}")

    def completion_summary(self, total_items: int):
        elapsed = time.time() - self.start_time
        rate = total_items / elapsed if elapsed > 0 else 0
        self.logger.info(f"Processing completed. Total saved posts: {total_items}")
        self.logger.debug(f"{self.tool_name} finished in {elapsed:.1f}s ({rate:.1f} posts/sec)")


def compact_timestamp(ts: Optional[str], fallback: str) -> str:
    """Strip ':', '-', 'T' and 'Z' from an ISO timestamp for use in file names."""
    if not ts:
        return fallback
    return _TIMESTAMP_SEPARATORS.sub("", ts)

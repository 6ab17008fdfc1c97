#!/usr/bin/env python3
"""
Crawler Errors

Every failure that can abort a crawl run. None of these are retried; they
propagate up to the CLI, which logs them and exits non-zero.
"""

from typing import Optional


class CrawlerError(Exception):
    """Base class for crawl failures."""


class TransportError(CrawlerError):
    """Raised when the search endpoint cannot be reached."""


class HttpStatusError(CrawlerError):
    """Raised when the search endpoint answers with a non-success status."""

    def __init__(self, status_code: int, url: str = ""):
        self.status_code = status_code
        self.url = url
        super().__init__(f"HTTP error {status_code}" + (f" for {url}" if url else ""))


class DecodeError(CrawlerError):
    """Raised when a response body is not the expected JSON shape."""


class FilesystemError(CrawlerError):
    """Raised when writing, renaming, compressing or deleting a shard fails."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class ShardStateError(CrawlerError):
    """Raised on an invalid shard lifecycle call, e.g. finalizing twice."""

#!/usr/bin/env python3
"""
Posts Crawler

Walks the planned search windows in order, drains each window's cursor
and streams every page into the shard writer.
"""

import os
from typing import Iterable, Optional, Protocol

from bsky_client import BlueskySearchClient, Page
from config import CrawlConfig
from errors import FilesystemError
from shard_writer import RunState, ShardWriter
from utils import RunLogger
from windows import TimeWindow, plan_windows


class PostSource(Protocol):
    def fetch_page(self, query: str, window: TimeWindow, lang: str, limit: int,
                   cursor: Optional[str] = None) -> Page:
        ...


class CrawlDriver:
    """Sequential crawl: one window, one page, one post at a time."""

    def __init__(self, source: PostSource, writer: ShardWriter, query: str, lang: str, limit: int,
                 run_logger: Optional[RunLogger] = None):
        self.source = source
        self.writer = writer
        self.query = query
        self.lang = lang
        self.limit = limit
        self.logger = run_logger or RunLogger()

    @property
    def state(self) -> RunState:
        return self.writer.state

    def run_window(self, window: TimeWindow) -> int:
        """Follow the window's cursor until it runs out. Returns posts written."""
        cursor = None
        written = 0

        while True:
            page = self.source.fetch_page(self.query, window, self.lang, self.limit, cursor)
            self.logger.page_received(window, cursor, len(page.posts))

            if not page.posts:
                # Cursors past the end of the result set come back empty
                self.logger.info(f"No posts returned for the period {window.since_iso()} - {window.until_iso()}.")
                break

            self.writer.append_all(page.posts)
            written += len(page.posts)

            cursor = page.cursor
            if not cursor:
                break

        return written

    def run(self, windows: Iterable[TimeWindow]) -> RunState:
        for window in windows:
            self.logger.interval(window)
            self.run_window(window)
        return self.state


def ensure_output_dir(path: str, run_logger: RunLogger):
    if os.path.isdir(path):
        return
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"Could not create output directory {path}: {e}", path) from e
    run_logger.info(f"Created output directory: {path}")


def crawl(config: CrawlConfig, source: Optional[PostSource] = None,
          writer: Optional[ShardWriter] = None, run_logger: Optional[RunLogger] = None) -> RunState:
    """Crawl every window of the configured date range into zipped CSV shards.

    On success the last shard is finalized. On failure the error propagates
    and the open shard is flushed but left unfinalized.
    """
    run_logger = run_logger or RunLogger()
    ensure_output_dir(config.base_files_dir, run_logger)

    owns_source = source is None
    if source is None:
        source = BlueskySearchClient(config.base_url, timeout=config.timeout, run_logger=run_logger)
    if writer is None:
        writer = ShardWriter(config.base_files_dir, config.posts_per_file, run_logger=run_logger)

    windows = plan_windows(config.start_day, config.end_day, config.minute_interval, config.tzinfo)
    run_logger.info(
        f"Crawling '{config.query}' from {config.start_day} to {config.end_day} "
        f"in {len(windows)} windows of {config.minute_interval} minutes"
    )

    driver = CrawlDriver(source, writer, config.query, config.language, config.limit, run_logger)
    try:
        with writer:
            state = driver.run(windows)
    finally:
        if owns_source:
            source.close()

    run_logger.completion_summary(state.total_posts_processed)
    return state

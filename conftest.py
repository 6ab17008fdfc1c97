import logging
from typing import Dict, List, Optional

import pytest

from bsky_client import Page, Post
from utils import LOGGER_NAME, RunLogger


def make_post(n: int, text: Optional[str] = None, created_at: Optional[str] = None) -> Post:
    return Post(
        handle=f"user{n}.bsky.social",
        created_at=created_at or f"2024-01-01T10:{n % 60:02d}:00.000Z",
        text=text if text is not None else f"post number {n}",
        reply_count=n,
        repost_count=n * 2,
        like_count=n * 3,
        quote_count=n * 4,
    )


class FakeSource:
    """Serves scripted pages per window and records every call."""

    def __init__(self, pages_by_window: Optional[Dict[str, List[Page]]] = None,
                 default_pages: Optional[List[Page]] = None):
        self.pages_by_window = pages_by_window or {}
        self.default_pages = default_pages or [Page()]
        self.calls = []

    def fetch_page(self, query, window, lang, limit, cursor=None):
        self.calls.append((window, cursor))
        pages = self.pages_by_window.get(window.since_iso(), self.default_pages)
        index = 0 if cursor is None else int(cursor)
        return pages[index]


def paged(*post_batches: List[Post]) -> List[Page]:
    """Chain batches into pages whose cursors point at the next page."""
    pages = []
    for i, posts in enumerate(post_batches):
        cursor = str(i + 1) if i + 1 < len(post_batches) else None
        pages.append(Page(posts=list(posts), cursor=cursor))
    return pages


@pytest.fixture
def run_logger():
    logger = logging.getLogger(LOGGER_NAME + ".tests")
    logger.setLevel(logging.DEBUG)
    return RunLogger("TestRun", logger=logger)

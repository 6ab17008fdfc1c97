#!/usr/bin/env python3
"""
Bluesky Search Client

Thin client over the public app.bsky.feed.searchPosts endpoint. One call
fetches one page of posts for a search window; paging is left to the
caller.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from errors import DecodeError, HttpStatusError, TransportError
from utils import RunLogger
from windows import TimeWindow

DEFAULT_BASE_URL = "https://public.api.bsky.app/xrpc/app.bsky.feed.searchPosts"


def _require_str(value: Any, name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{name} is not a string")
    return value


@dataclass(frozen=True)
class Post:
    """The fields of a search result that end up in the CSV."""
    handle: str
    created_at: str
    text: str
    reply_count: int = 0
    repost_count: int = 0
    like_count: int = 0
    quote_count: int = 0

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Post":
        try:
            author = data["author"]
            record = data["record"]
            return cls(
                handle=str(author["handle"]),
                created_at=str(record["createdAt"]),
                text=_require_str(record["text"], "record.text"),
                reply_count=int(data.get("replyCount") or 0),
                repost_count=int(data.get("repostCount") or 0),
                like_count=int(data.get("likeCount") or 0),
                quote_count=int(data.get("quoteCount") or 0),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"Malformed post in search response: {e!r}") from e


@dataclass
class Page:
    """One page of search results; no cursor means it is the last one."""
    posts: List[Post] = field(default_factory=list)
    cursor: Optional[str] = None

    @classmethod
    def from_api(cls, data: Any) -> "Page":
        if not isinstance(data, dict):
            raise DecodeError(f"Expected a JSON object, got {type(data).__name__}")

        raw_posts = data.get("posts") or []
        if not isinstance(raw_posts, list):
            raise DecodeError("Field 'posts' is not a list")

        cursor = data.get("cursor") or None
        if cursor is not None and not isinstance(cursor, str):
            raise DecodeError("Field 'cursor' is not a string")

        return cls(posts=[Post.from_api(p) for p in raw_posts], cursor=cursor)


class BlueskySearchClient:
    """Fetches search result pages. No retries: every failure is raised."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = 30.0,
                 session: Optional[requests.Session] = None, run_logger: Optional[RunLogger] = None):
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Accept': 'application/json',
            'User-Agent': 'bsky-posts-crawler'
        })
        self.logger = run_logger or RunLogger()

    def build_params(self, query: str, window: TimeWindow, lang: str, limit: int,
                     cursor: Optional[str] = None) -> Dict[str, str]:
        params = {
            'q': query,
            'sort': 'latest',
            'since': window.since_iso(),
            'until': window.until_iso(),
            'lang': lang,
            'limit': str(limit)
        }
        if cursor:
            params['cursor'] = cursor
        return params

    def fetch_page(self, query: str, window: TimeWindow, lang: str, limit: int,
                   cursor: Optional[str] = None) -> Page:
        """Fetch one page of posts for the window."""
        params = self.build_params(query, window, lang, limit, cursor)
        request = self.session.prepare_request(requests.Request('GET', self.base_url, params=params))
        self.logger.api_call(request.url)

        try:
            response = self.session.send(request, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"Request to {request.url} failed: {e}") from e

        if not response.ok:
            raise HttpStatusError(response.status_code, request.url)

        try:
            data = response.json()
        except ValueError as e:
            raise DecodeError(f"Response from {request.url} is not valid JSON: {e}") from e

        return Page.from_api(data)

    def close(self):
        self.session.close()

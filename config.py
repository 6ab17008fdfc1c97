#!/usr/bin/env python3
"""
Crawler Configuration

Loads the crawl settings from a config.json file (camelCase keys) into a
validated dataclass.
"""

import json
import os
import re
from dataclasses import dataclass, fields
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Dict, Optional

from bsky_client import DEFAULT_BASE_URL

DEFAULT_UTC_OFFSET = "-03:00"

_OFFSET_PATTERN = re.compile(r"^([+-])(\d{2}):?(\d{2})$")
_TRAILING_OFFSET = re.compile(r"([+-]\d{2}:?\d{2}|Z)$")

# config.json key -> CrawlConfig field
JSON_KEYS = {
    'query': 'query',
    'since': 'since',
    'until': 'until',
    'language': 'language',
    'limit': 'limit',
    'postsPerFile': 'posts_per_file',
    'baseFilesDir': 'base_files_dir',
    'minuteInterval': 'minute_interval',
    'utcOffset': 'utc_offset',
    'baseUrl': 'base_url',
    'logFile': 'log_file',
    'timeout': 'timeout',
}


def parse_utc_offset(offset: str) -> tzinfo:
    """Turn '-03:00', '+0530' or 'Z' into a fixed-offset tzinfo."""
    if offset in ('Z', 'z'):
        return timezone.utc
    match = _OFFSET_PATTERN.match(offset.strip())
    if not match:
        raise ValueError(f"Invalid UTC offset: {offset!r} (expected e.g. -03:00)")
    sign, hours, minutes = match.groups()
    delta = timedelta(hours=int(hours), minutes=int(minutes))
    return timezone(-delta if sign == '-' else delta)


def parse_day(value: str) -> date:
    """Read the calendar day of 'YYYY-MM-DD' or a full ISO timestamp."""
    try:
        return datetime.strptime(value.split('T')[0], '%Y-%m-%d').date()
    except ValueError:
        raise ValueError(f"Invalid date: {value!r} (expected YYYY-MM-DD)") from None


@dataclass
class CrawlConfig:
    """Configuration for one crawl run."""
    query: str
    since: str
    until: str
    language: str = "pt"
    limit: int = 100
    posts_per_file: int = 10000
    base_files_dir: str = "files"
    minute_interval: int = 60
    utc_offset: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    log_file: str = "runtime.log"
    timeout: float = 30.0

    def __post_init__(self):
        if not self.query:
            raise ValueError("query is required")
        if self.utc_offset is None:
            offset = _TRAILING_OFFSET.search(self.since) if 'T' in self.since else None
            self.utc_offset = offset.group(1) if offset else DEFAULT_UTC_OFFSET

        for name in ("limit", "posts_per_file", "minute_interval"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {value!r}")

        if self.start_day > self.end_day:
            raise ValueError(f"since ({self.since}) is after until ({self.until})")
        if not 1 <= self.limit <= 100:
            raise ValueError("limit must be between 1 and 100")
        if self.posts_per_file <= 0:
            raise ValueError("postsPerFile must be positive")
        if self.minute_interval <= 0:
            raise ValueError("minuteInterval must be positive")
        parse_utc_offset(self.utc_offset)

    @property
    def start_day(self) -> date:
        return parse_day(self.since)

    @property
    def end_day(self) -> date:
        return parse_day(self.until)

    @property
    def tzinfo(self) -> tzinfo:
        return parse_utc_offset(self.utc_offset)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[str] = None) -> "CrawlConfig":
        unknown = set(data) - set(JSON_KEYS)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")

        kwargs = {JSON_KEYS[key]: value for key, value in data.items()}
        if base_dir and 'base_files_dir' in kwargs:
            kwargs['base_files_dir'] = os.path.join(base_dir, kwargs['base_files_dir'])
        return cls(**kwargs)

    def replace(self, **overrides) -> "CrawlConfig":
        """Copy with the given non-None fields overridden."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return CrawlConfig(**values)


def load_config(path: str) -> CrawlConfig:
    """Load config.json. baseFilesDir is resolved against the file's directory."""
    with open(path, encoding='utf-8') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return CrawlConfig.from_dict(data, base_dir=os.path.dirname(os.path.abspath(path)))

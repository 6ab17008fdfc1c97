#!/usr/bin/env python3
"""
Time Window Planner

Splits a date range into fixed-length search windows so that no single
search query runs into the API's result cap.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterator

MINUTES_PER_DAY = 1440


@dataclass(frozen=True)
class TimeWindow:
    """Closed search interval, both ends at one-second resolution."""
    since: datetime
    until: datetime

    def __post_init__(self):
        if self.since > self.until:
            raise ValueError(f"Window starts after it ends: {self.since} > {self.until}")

    def since_iso(self) -> str:
        return self.since.isoformat()

    def until_iso(self) -> str:
        return self.until.isoformat()

    def __str__(self) -> str:
        return f"{self.since_iso()} - {self.until_iso()}"


def windows_for_day(day: date, interval_minutes: int, tz: tzinfo) -> Iterator[TimeWindow]:
    """Yield the windows of a single calendar day.

    The last window is cut short at 23:59:59 when the interval does not
    divide the day evenly.
    """
    for start_minute in range(0, MINUTES_PER_DAY, interval_minutes):
        end_minute = min(start_minute + interval_minutes - 1, MINUTES_PER_DAY - 1)

        since = datetime(day.year, day.month, day.day, start_minute // 60, start_minute % 60, 0, tzinfo=tz)
        until = datetime(day.year, day.month, day.day, end_minute // 60, end_minute % 60, 59, tzinfo=tz)
        yield TimeWindow(since, until)


class WindowPlan:
    """Restartable sequence of windows from start_date to end_date inclusive."""

    def __init__(self, start_date: date, end_date: date, interval_minutes: int, tz: tzinfo):
        if not isinstance(interval_minutes, int) or interval_minutes <= 0:
            raise ValueError(f"interval_minutes must be a positive integer, got {interval_minutes!r}")

        self.start_date = start_date
        self.end_date = end_date
        self.interval_minutes = interval_minutes
        self.tz = tz

    def days(self) -> Iterator[date]:
        current = self.start_date
        while current <= self.end_date:
            yield current
            current += timedelta(days=1)

    def __iter__(self) -> Iterator[TimeWindow]:
        for day in self.days():
            yield from windows_for_day(day, self.interval_minutes, self.tz)

    def windows_per_day(self) -> int:
        return -(-MINUTES_PER_DAY // self.interval_minutes)

    def __len__(self) -> int:
        if self.end_date < self.start_date:
            return 0
        return ((self.end_date - self.start_date).days + 1) * self.windows_per_day()


def plan_windows(start_date: date, end_date: date, interval_minutes: int, tz: tzinfo) -> WindowPlan:
    """Plan the search windows covering every day in [start_date, end_date]."""
    return WindowPlan(start_date, end_date, interval_minutes, tz)

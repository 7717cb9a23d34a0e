"""
Exception types raised (or absorbed) by the scraper.
"""
from __future__ import annotations

from typing import Optional


class GoScrapeError(Exception):
    """Base class for scraper errors."""


class TimeParseError(GoScrapeError, ValueError):
    """A start/end boundary was not a valid RFC3339 timestamp."""

    def __init__(self, value: str, reason: Optional[str] = None):
        self.value = value
        self.reason = reason
        message = f"Invalid RFC3339 timestamp: {value!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class FetchError(GoScrapeError):
    """Transport or read failure for a single index window."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to fetch {url}: {reason}")


class MalformedRecordError(GoScrapeError):
    """A response line that is not a usable index record."""

    def __init__(self, line_no: int, reason: str):
        self.line_no = line_no
        self.reason = reason
        super().__init__(f"Malformed record on line {line_no}: {reason}")

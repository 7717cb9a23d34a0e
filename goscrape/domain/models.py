"""
Pydantic models for the index scraper.

This module defines the data models used throughout the scraper, including:
- The wire shape of a single index record
- Packages and their observed version history
- The aggregated index snapshot and its fetch report

All models use Pydantic for validation and serialization.
"""

from __future__ import annotations

import threading
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


# Paths shorter than this are treated as invalid records.
MIN_PATH_LENGTH = 5


# ---------------------------------------------------------------------------
# Wire Models
# ---------------------------------------------------------------------------


class IndexRecord(BaseModel):
    """
    One line of an index response.

    The index service emits ``{"Path": ..., "Version": ..., "Timestamp": ...}``
    objects, one per line. Missing fields decode to empty strings; the path
    length check decides whether the record is usable.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    path: str = Field(default="", alias="Path", description="Module path, e.g. 'golang.org/x/text'.")
    version: str = Field(default="", alias="Version", description="Published version string.")
    timestamp: str = Field(
        default="",
        alias="Timestamp",
        description="Publication time as reported by the index (RFC3339Nano).",
    )

    @property
    def is_valid(self) -> bool:
        return len(self.path) >= MIN_PATH_LENGTH


# ---------------------------------------------------------------------------
# Package Models
# ---------------------------------------------------------------------------


class PackageVersion(BaseModel):
    """A snapshot of one observed publication event."""

    model_config = ConfigDict(frozen=True)

    version: str
    timestamp: str


class GoPackage(BaseModel):
    """
    A single module from the index with every version seen during a scrape.

    Versions are kept in arrival order. Duplicates are not removed and the
    list is not sorted by timestamp.
    """

    path: str
    versions: List[PackageVersion] = Field(default_factory=list)
    dependencies: List[str] = Field(
        default_factory=list,
        description="Reserved for dependency information; never populated by the scraper.",
    )


# ---------------------------------------------------------------------------
# Fetch Report Models
# ---------------------------------------------------------------------------


FetchStatus = Literal["ok", "failed", "truncated", "cancelled"]


class FetchOutcome(BaseModel):
    """Result of fetching and parsing one index window."""

    url: str
    status: FetchStatus
    records: int = Field(default=0, description="Records pushed to the aggregation stage.")
    skipped_lines: int = Field(
        default=0,
        description="Invalid lines skipped when early abandonment is disabled.",
    )
    reason: Optional[str] = None


class ScrapeReport(BaseModel):
    """Per-window outcomes collected alongside the snapshot."""

    url_count: int = 0
    record_count: int = 0
    outcomes: List[FetchOutcome] = Field(default_factory=list)

    @property
    def failures(self) -> List[FetchOutcome]:
        return [o for o in self.outcomes if o.status in ("failed", "cancelled")]

    @property
    def truncated(self) -> List[FetchOutcome]:
        return [o for o in self.outcomes if o.status == "truncated"]

    @property
    def complete(self) -> bool:
        return len(self.outcomes) == self.url_count and all(o.status == "ok" for o in self.outcomes)


# ---------------------------------------------------------------------------
# Index Snapshot
# ---------------------------------------------------------------------------


class GoIndex(BaseModel):
    """
    Point-in-time snapshot mapping module path to its version history.

    ``append`` is safe to call from any number of threads or tasks. Once a
    scrape returns, the snapshot belongs to the caller and is no longer
    mutated by the scraper.
    """

    packages: Dict[str, GoPackage] = Field(default_factory=dict)
    report: ScrapeReport = Field(default_factory=ScrapeReport)

    _lock = PrivateAttr(default_factory=threading.Lock)

    def append(self, path: str, version: str, timestamp: str) -> None:
        """Record one publication event for ``path``."""
        entry = PackageVersion(version=version, timestamp=timestamp)
        with self._lock:
            package = self.packages.get(path)
            if package is None:
                self.packages[path] = GoPackage(path=path, versions=[entry])
            else:
                package.versions.append(entry)

    def get(self, path: str) -> Optional[GoPackage]:
        return self.packages.get(path)

    def paths(self) -> List[str]:
        return list(self.packages)

    def __contains__(self, path: object) -> bool:
        return path in self.packages

    def __len__(self) -> int:
        return len(self.packages)

"""
Point-in-time snapshots of the Go module index (https://index.golang.org/).

This package is responsible for:
* Splitting a time range into 12 hour "since" windows.
* Fetching every window concurrently and parsing its newline-delimited JSON.
* Merging the records into a path -> version history mapping.

It is not meant for real-time use; it builds the list of modules and their
versions that other tooling starts from.
"""

from goscrape.domain.errors import FetchError, GoScrapeError, MalformedRecordError, TimeParseError
from goscrape.domain.models import GoIndex, GoPackage, IndexRecord, PackageVersion, ScrapeReport
from goscrape.services.scraper import fetch_and_parse, fetch_and_parse_async, scrape, scrape_async
from goscrape.services.windows import generate_urls

__all__ = [
    "FetchError",
    "GoIndex",
    "GoPackage",
    "GoScrapeError",
    "IndexRecord",
    "MalformedRecordError",
    "PackageVersion",
    "ScrapeReport",
    "TimeParseError",
    "fetch_and_parse",
    "fetch_and_parse_async",
    "generate_urls",
    "scrape",
    "scrape_async",
]

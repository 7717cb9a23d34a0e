"""
Fetch index windows and parse their newline-delimited JSON bodies.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import httpx
from pydantic import ValidationError

from goscrape.core.config import ScraperConfig
from goscrape.domain.errors import FetchError, MalformedRecordError
from goscrape.domain.models import MIN_PATH_LENGTH, FetchOutcome, IndexRecord

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


def print_progress(ordinal: int, total: int) -> None:
    print(f"\rProgress: {ordinal}/{total}", end="", flush=True)


@dataclass
class ParsedPage:
    """Records parsed from one response body."""

    records: List[IndexRecord] = field(default_factory=list)
    skipped_lines: int = 0
    # Set when parsing stopped early at an invalid line.
    abandoned_at: Optional[int] = None
    reason: Optional[str] = None


def parse_record(line: str, line_no: int) -> IndexRecord:
    """
    Decode a single line into an :class:`IndexRecord`.

    Raises:
        MalformedRecordError: if the line is not a JSON object or its path is too short.
    """
    try:
        record = IndexRecord.model_validate_json(line)
    except ValidationError as e:
        raise MalformedRecordError(line_no, f"invalid JSON record: {e.errors()[0]['msg']}") from e

    if not record.is_valid:
        raise MalformedRecordError(
            line_no, f"path {record.path!r} shorter than {MIN_PATH_LENGTH} characters"
        )
    return record


def parse_index_body(body: str, abandon_on_invalid: bool = True) -> ParsedPage:
    """
    Parse a response body, one record per newline-terminated line.

    Trailing blank lines are always tolerated. With ``abandon_on_invalid``
    (the default) the first invalid line, a blank one included, ends parsing:
    it and every line after it are dropped, even lines that would have
    parsed. Otherwise blank lines are ignored and invalid lines are skipped
    and counted.
    """
    page = ParsedPage()
    lines = body.split("\n")
    while lines and not lines[-1].strip():
        lines.pop()

    for line_no, line in enumerate(lines, start=1):
        if not abandon_on_invalid and not line.strip():
            continue
        try:
            page.records.append(parse_record(line, line_no))
        except MalformedRecordError as e:
            if abandon_on_invalid:
                page.abandoned_at = line_no
                page.reason = str(e)
                break
            page.skipped_lines += 1
            logger.debug(f"Skipping invalid line: {e}")
    return page


def build_client(
    config: ScraperConfig,
    max_workers: int,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create an HTTP client sized for ``max_workers`` concurrent requests."""
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(config.request_timeout),
        limits=httpx.Limits(max_connections=max_workers, max_keepalive_connections=max_workers),
        transport=transport,
    )


class IndexFetcher:
    """
    Fetches index windows with at most ``max_workers`` requests in flight.

    Failures never escape a task: each window yields a :class:`FetchOutcome`
    and whatever records it produced are pushed to the output queue.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: ScraperConfig,
        max_workers: int,
        progress: Optional[ProgressCallback] = None,
    ):
        self.client = client
        self.config = config
        self.progress = progress
        self._gate = asyncio.Semaphore(max_workers)
        self._admitted = 0

    async def _download(self, url: str) -> str:
        try:
            response = await self.client.get(url)
            response.raise_for_status()
            return response.text
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError(url, str(e) or type(e).__name__) from e

    async def fetch_window(self, url: str, total: int, queue: asyncio.Queue) -> FetchOutcome:
        """Fetch one window, parse it, and push its records onto ``queue``."""
        async with self._gate:
            self._admitted += 1
            if self.progress:
                self.progress(self._admitted, total)

            try:
                body = await self._download(url)
            except FetchError as e:
                logger.warning(str(e))
                return FetchOutcome(url=url, status="failed", reason=e.reason)

            page = parse_index_body(body, self.config.abandon_on_invalid_record)
            for record in page.records:
                await queue.put(record)

            if page.abandoned_at is not None:
                logger.warning(f"Abandoned {url} at line {page.abandoned_at}: {page.reason}")
                return FetchOutcome(
                    url=url,
                    status="truncated",
                    records=len(page.records),
                    reason=page.reason,
                )

            logger.debug(f"Fetched {len(page.records)} records from {url}")
            return FetchOutcome(
                url=url,
                status="ok",
                records=len(page.records),
                skipped_lines=page.skipped_lines,
            )

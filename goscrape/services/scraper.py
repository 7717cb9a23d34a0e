"""
Build a snapshot of the module index.

A scrape runs in three steps:

1. Generate one URL per index window (errors abort before any request).
2. Fetch and parse every window with bounded concurrency. This step ends
   once every fetch task has finished, failed, or been cancelled.
3. Drain the remaining parsed records into the index and wait for every
   aggregation consumer to finish.

The caller gets the completed :class:`GoIndex` only after both steps close.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

import httpx

from goscrape.core.config import ScraperConfig, get_config
from goscrape.domain.models import FetchOutcome, GoIndex
from goscrape.services.aggregator import Aggregator
from goscrape.services.fetcher import IndexFetcher, ProgressCallback, build_client, print_progress
from goscrape.services.windows import generate_urls

logger = logging.getLogger(__name__)


async def _fetch_all(
    fetcher: IndexFetcher,
    urls: Sequence[str],
    queue: asyncio.Queue,
    deadline: Optional[float],
) -> List[FetchOutcome]:
    tasks = [asyncio.create_task(fetcher.fetch_window(url, len(urls), queue)) for url in urls]
    if not tasks:
        return []

    _, pending = await asyncio.wait(tasks, timeout=deadline)
    if pending:
        logger.warning(f"Scrape deadline of {deadline}s reached, cancelling {len(pending)} windows")
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    outcomes = []
    for url, task in zip(urls, tasks):
        if task.cancelled():
            outcomes.append(FetchOutcome(url=url, status="cancelled", reason="scrape deadline exceeded"))
        else:
            outcomes.append(task.result())
    return outcomes


async def fetch_and_parse_async(
    urls: Sequence[str],
    max_workers: Optional[int] = None,
    report_progress: bool = False,
    *,
    config: Optional[ScraperConfig] = None,
    progress: Optional[ProgressCallback] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> GoIndex:
    """
    Fetch every URL and aggregate the parsed records into a new index.

    Args:
        urls: Index window URLs, usually from :func:`generate_urls`.
        max_workers: Maximum concurrent requests; defaults to ``config.max_workers``.
        report_progress: Report each window as it is admitted.
        config: Scraper settings; defaults to the process-wide config.
        progress: Called with (ordinal, total) on admission. Defaults to a
            console printer when ``report_progress`` is set.
        transport: Optional httpx transport, mainly for tests.

    Returns:
        The populated index. Per-window failures are recorded on
        ``index.report`` rather than raised.
    """
    config = config or get_config()
    workers = config.max_workers if max_workers is None else max_workers
    if workers < 1:
        raise ValueError(f"max_workers must be at least 1, got {workers}")

    if report_progress and progress is None:
        progress = print_progress
    elif not report_progress:
        progress = None

    index = GoIndex()
    index.report.url_count = len(urls)
    queue: asyncio.Queue = asyncio.Queue(maxsize=config.queue_size)

    logger.info(f"Fetching {len(urls)} index windows with {workers} workers")

    aggregator = Aggregator(index, queue, config.aggregate_workers)
    aggregator.start()
    try:
        async with build_client(config, workers, transport=transport) as client:
            fetcher = IndexFetcher(client, config, workers, progress=progress)
            outcomes = await _fetch_all(fetcher, urls, queue, config.scrape_deadline)
        index.report.record_count = await aggregator.close()
    except BaseException:
        aggregator.cancel()
        raise
    finally:
        if progress is print_progress and urls:
            print()

    index.report.outcomes = outcomes
    report = index.report
    logger.info(
        f"Scrape finished: {len(index)} packages, {report.record_count} records, "
        f"{len(report.failures)} failed and {len(report.truncated)} truncated windows"
    )
    return index


async def scrape_async(
    start: Optional[str] = None,
    end: Optional[str] = None,
    max_workers: Optional[int] = None,
    report_progress: bool = False,
    *,
    config: Optional[ScraperConfig] = None,
    progress: Optional[ProgressCallback] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> GoIndex:
    """
    Scrape every window between ``start`` and ``end``.

    Raises:
        TimeParseError: if either boundary is malformed. No request is made.
    """
    config = config or get_config()
    urls = generate_urls(start, end, config)
    return await fetch_and_parse_async(
        urls,
        max_workers,
        report_progress,
        config=config,
        progress=progress,
        transport=transport,
    )


def fetch_and_parse(
    urls: Sequence[str],
    max_workers: Optional[int] = None,
    report_progress: bool = False,
    **kwargs,
) -> GoIndex:
    """Blocking wrapper around :func:`fetch_and_parse_async`."""
    return asyncio.run(fetch_and_parse_async(urls, max_workers, report_progress, **kwargs))


def scrape(
    start: Optional[str] = None,
    end: Optional[str] = None,
    max_workers: Optional[int] = None,
    report_progress: bool = False,
    **kwargs,
) -> GoIndex:
    """Blocking wrapper around :func:`scrape_async`."""
    config = kwargs.pop("config", None) or get_config()
    # Parse the boundaries before starting an event loop.
    urls = generate_urls(start, end, config)
    return fetch_and_parse(urls, max_workers, report_progress, config=config, **kwargs)

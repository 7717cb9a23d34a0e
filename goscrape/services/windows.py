"""
Generate the list of index windows to scrape.
"""
from __future__ import annotations

import logging
from typing import List, Optional
from urllib.parse import quote

from goscrape.core.config import WINDOW_STEP, ScraperConfig, get_config
from goscrape.domain.time_utils import IndexTime, parse_rfc3339_nano, utc_now

logger = logging.getLogger(__name__)


def window_url(index_url: str, since: IndexTime) -> str:
    return f"{index_url}?since={quote(since.format(), safe=':')}"


def generate_urls(
    start: Optional[str] = None,
    end: Optional[str] = None,
    config: Optional[ScraperConfig] = None,
) -> List[str]:
    """
    Return one index URL per 12 hour window from ``start`` up to ``end``.

    Args:
        start: RFC3339Nano start boundary. Empty/None means the index's
            earliest record.
        end: RFC3339Nano end boundary (exclusive). Empty/None means now.
        config: Scraper settings; defaults to the process-wide config.

    Returns:
        URLs in increasing ``since`` order. Empty when start >= end.

    Raises:
        TimeParseError: if either boundary is malformed.
    """
    config = config or get_config()

    since = parse_rfc3339_nano(start or config.index_start_time)
    until = parse_rfc3339_nano(end) if end else utc_now()

    urls: List[str] = []
    while since < until:
        urls.append(window_url(config.index_url, since))
        try:
            since = since.shift(WINDOW_STEP)
        except OverflowError:
            # Past the largest representable date; no later window exists.
            break

    logger.debug(f"Generated {len(urls)} index windows up to {until.format()}")
    return urls

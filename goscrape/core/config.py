"""
Scraper configuration.

Defaults live on :class:`ScraperConfig`. A handful of fields can be
overridden from the environment; everything else is set by constructing a
config explicitly and passing it to the scraper.
"""
from __future__ import annotations

import os
from datetime import timedelta
from typing import Optional

from pydantic import BaseModel, Field

INDEX_URL_ENV_VAR = "GOSCRAPE_INDEX_URL"
MAX_WORKERS_ENV_VAR = "GOSCRAPE_MAX_WORKERS"
REQUEST_TIMEOUT_ENV_VAR = "GOSCRAPE_REQUEST_TIMEOUT"

DEFAULT_INDEX_URL = "https://index.golang.org/index"

# Earliest record published by index.golang.org. Starting earlier is allowed
# but fetches nothing extra.
INDEX_START_TIME = "2019-04-10T19:08:52.997264Z"

# Window size between consecutive "since" requests. Smaller steps add load and
# duplicate records; larger steps can miss records when a window holds more
# than one page.
WINDOW_STEP = timedelta(hours=12)


class ScraperConfig(BaseModel):
    """
    Settings for one scrape.

    ``request_timeout`` and ``scrape_deadline`` default to None, meaning a
    hung connection blocks its worker slot indefinitely.
    """

    index_url: str = Field(
        default=DEFAULT_INDEX_URL,
        description="Base URL of the index service; '?since=<timestamp>' is appended per window.",
    )
    index_start_time: str = Field(
        default=INDEX_START_TIME,
        description="Start boundary used when the caller does not pass one (RFC3339Nano).",
    )
    max_workers: int = Field(
        default=10,
        ge=1,
        description="Maximum number of index windows fetched concurrently.",
    )
    aggregate_workers: int = Field(
        default=4,
        ge=1,
        description="Number of consumers merging parsed records into the index.",
    )
    queue_size: int = Field(
        default=0,
        ge=0,
        description="Capacity of the record queue between stages. 0 means unbounded; "
        "a positive value makes fetch tasks wait when the queue is full.",
    )
    request_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Per-request timeout in seconds. None disables the timeout.",
    )
    scrape_deadline: Optional[float] = Field(
        default=None,
        gt=0,
        description="Upper bound in seconds for the whole fetch stage. Unfinished windows are cancelled.",
    )
    abandon_on_invalid_record: bool = Field(
        default=True,
        description="Stop reading a response at its first invalid line. "
        "When False, invalid lines are skipped and counted instead.",
    )


def _load_config_from_env() -> ScraperConfig:
    overrides = {}

    index_url = os.environ.get(INDEX_URL_ENV_VAR)
    if index_url:
        overrides["index_url"] = index_url

    max_workers = os.environ.get(MAX_WORKERS_ENV_VAR)
    if max_workers:
        overrides["max_workers"] = max_workers

    request_timeout = os.environ.get(REQUEST_TIMEOUT_ENV_VAR)
    if request_timeout:
        overrides["request_timeout"] = request_timeout

    return ScraperConfig(**overrides)


_config: Optional[ScraperConfig] = None


def get_config() -> ScraperConfig:
    """Return the process-wide config, reading the environment on first use."""
    global _config
    if _config is None:
        _config = _load_config_from_env()
    return _config


def reset_config() -> None:
    global _config
    _config = None

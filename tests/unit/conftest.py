"""
Pytest configuration for unit tests.

Provides a fake index service built on httpx.MockTransport so no test
touches the network.
"""
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from goscrape.core.config import ScraperConfig, reset_config

TEST_INDEX_URL = "https://index.test/index"


def since_of(url):
    """Extract the 'since' query value from a window URL."""
    return parse_qs(urlsplit(str(url)).query)["since"][0]


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Keep environment overrides from leaking between tests."""
    for var in ("GOSCRAPE_INDEX_URL", "GOSCRAPE_MAX_WORKERS", "GOSCRAPE_REQUEST_TIMEOUT"):
        monkeypatch.delenv(var, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def config():
    return ScraperConfig(index_url=TEST_INDEX_URL)


@pytest.fixture
def make_transport():
    """Build a MockTransport serving bodies keyed by 'since' value."""

    def factory(bodies, default_body=""):
        def handler(request):
            body = bodies.get(since_of(request.url), default_body)
            if isinstance(body, Exception):
                raise body
            if isinstance(body, httpx.Response):
                return body
            return httpx.Response(200, text=body)

        return httpx.MockTransport(handler)

    return factory

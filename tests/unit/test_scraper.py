"""
Unit tests for the scrape pipeline against a fake index service.
"""
import asyncio
import json

import httpx
import pytest

from conftest import TEST_INDEX_URL, since_of
from goscrape.core.config import ScraperConfig
from goscrape.domain.errors import TimeParseError
from goscrape.services.scraper import fetch_and_parse, fetch_and_parse_async, scrape, scrape_async
from goscrape.services.windows import generate_urls

WINDOW_A = "2023-01-01T00:00:00Z"
WINDOW_B = "2023-01-01T12:00:00Z"
RANGE_END = "2023-01-01T13:00:00Z"


def line(path, version, timestamp="2023-01-01T00:00:00Z"):
    return json.dumps({"Path": path, "Version": version, "Timestamp": timestamp})


class TestScrape:
    """End-to-end scrapes over a mocked index."""

    def test_two_windows_same_module(self, config, make_transport):
        """Versions from both windows end up under one path."""
        transport = make_transport(
            {
                WINDOW_A: '{"Path":"example.com/a","Version":"v1.0.0","Timestamp":"2023-01-01T00:00:00Z"}\n',
                WINDOW_B: '{"Path":"example.com/a","Version":"v1.1.0","Timestamp":"2023-02-01T00:00:00Z"}\n',
            }
        )

        index = scrape(WINDOW_A, RANGE_END, max_workers=2, config=config, transport=transport)

        assert index.paths() == ["example.com/a"]
        versions = {(v.version, v.timestamp) for v in index.get("example.com/a").versions}
        assert versions == {
            ("v1.0.0", "2023-01-01T00:00:00Z"),
            ("v1.1.0", "2023-02-01T00:00:00Z"),
        }
        assert index.report.url_count == 2
        assert index.report.record_count == 2
        assert index.report.complete

    def test_malformed_time_fails_before_any_request(self, config):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200)

        with pytest.raises(TimeParseError):
            scrape("not-a-time", RANGE_END, config=config, transport=httpx.MockTransport(handler))
        assert requests == []

    def test_empty_range_returns_empty_index(self, config, make_transport):
        index = scrape(RANGE_END, WINDOW_A, config=config, transport=make_transport({}))
        assert len(index) == 0
        assert index.report.url_count == 0
        assert index.report.complete

    def test_short_path_truncates_window(self, config, make_transport):
        """The invalid record and everything after it in that body is dropped."""
        body_a = "\n".join(
            [line("example.com/a", "v1.0.0"), line("abc", "v0.0.1"), line("example.com/b", "v1.0.0")]
        )
        body_b = line("example.com/c", "v2.0.0") + "\n"
        transport = make_transport({WINDOW_A: body_a, WINDOW_B: body_b})

        index = scrape(WINDOW_A, RANGE_END, max_workers=2, config=config, transport=transport)

        assert sorted(index.paths()) == ["example.com/a", "example.com/c"]
        assert "abc" not in index
        assert "example.com/b" not in index
        assert [o.url for o in index.report.truncated] == [generate_urls(WINDOW_A, RANGE_END, config)[0]]

    def test_skip_policy_keeps_records_after_invalid_line(self, make_transport):
        config = ScraperConfig(index_url=TEST_INDEX_URL, abandon_on_invalid_record=False)
        body = "\n".join([line("example.com/a", "v1.0.0"), line("abc", "v0.0.1"), line("example.com/b", "v1.0.0")])
        transport = make_transport({WINDOW_A: body})

        index = scrape(WINDOW_A, RANGE_END, config=config, transport=transport)

        assert sorted(index.paths()) == ["example.com/a", "example.com/b"]
        assert "abc" not in index

    def test_failed_windows_are_reported(self, config, make_transport):
        """Fetch failures do not raise; they show up on the report."""
        transport = make_transport(
            {
                WINDOW_A: httpx.ConnectError("connection reset"),
                WINDOW_B: line("example.com/a", "v1.0.0") + "\n",
            }
        )

        index = scrape(WINDOW_A, RANGE_END, max_workers=2, config=config, transport=transport)

        assert index.paths() == ["example.com/a"]
        assert not index.report.complete
        assert len(index.report.failures) == 1
        failure = index.report.failures[0]
        assert since_of(failure.url) == WINDOW_A
        assert failure.status == "failed"

    def test_invalid_index_url_is_reported_not_raised(self, make_transport):
        """A malformed base URL fails each window instead of the whole scrape."""
        config = ScraperConfig(index_url="https://index.test/in\x01dex")

        index = scrape(WINDOW_A, RANGE_END, max_workers=2, config=config, transport=make_transport({}))

        assert len(index) == 0
        assert [o.status for o in index.report.outcomes] == ["failed", "failed"]
        assert not index.report.complete

    def test_fetch_and_parse_with_prebuilt_urls(self, config, make_transport):
        urls = generate_urls("2023-01-01T00:00:00Z", "2023-01-03T00:00:00Z", config)
        bodies = {since_of(url): line(f"example.com/m{i}", "v1.0.0") for i, url in enumerate(urls)}

        index = fetch_and_parse(urls, 3, config=config, transport=make_transport(bodies))

        assert sorted(index.paths()) == sorted(f"example.com/m{i}" for i in range(len(urls)))

    def test_default_progress_printer(self, config, make_transport, capsys):
        scrape(WINDOW_A, RANGE_END, report_progress=True, config=config, transport=make_transport({}))
        out = capsys.readouterr().out
        assert "Progress: 2/2" in out

    def test_invalid_worker_count(self, config, make_transport):
        with pytest.raises(ValueError):
            fetch_and_parse(["https://index.test/index?since=x"], 0, config=config, transport=make_transport({}))


class TestPipelineConcurrency:
    """Concurrency limits, back-pressure and deadlines."""

    @pytest.mark.asyncio
    async def test_in_flight_requests_bounded_by_max_workers(self, config):
        state = {"in_flight": 0, "peak": 0}

        async def handler(request):
            state["in_flight"] += 1
            state["peak"] = max(state["peak"], state["in_flight"])
            await asyncio.sleep(0.01)
            state["in_flight"] -= 1
            return httpx.Response(200, text=line(f"example.com/{since_of(request.url)}", "v1.0.0"))

        urls = generate_urls("2023-01-01T00:00:00Z", "2023-01-11T00:00:00Z", config)
        index = await fetch_and_parse_async(urls, 3, config=config, transport=httpx.MockTransport(handler))

        assert len(urls) == 20
        assert state["peak"] == 3
        assert len(index) == 20

    @pytest.mark.asyncio
    async def test_bounded_queue_does_not_drop_records(self, make_transport):
        config = ScraperConfig(index_url=TEST_INDEX_URL, queue_size=1, aggregate_workers=1)
        urls = generate_urls("2023-01-01T00:00:00Z", "2023-01-02T12:00:00Z", config)
        bodies = {
            since_of(url): "\n".join(line("example.com/shared", f"v1.{w}.{n}") for n in range(5))
            for w, url in enumerate(urls)
        }

        index = await fetch_and_parse_async(urls, 3, config=config, transport=make_transport(bodies))

        versions = index.get("example.com/shared").versions
        assert len(versions) == 15
        assert {v.version for v in versions} == {f"v1.{w}.{n}" for w in range(3) for n in range(5)}
        assert index.report.record_count == 15

    @pytest.mark.asyncio
    async def test_scrape_deadline_cancels_hung_windows(self):
        config = ScraperConfig(index_url=TEST_INDEX_URL, scrape_deadline=0.2)

        async def handler(request):
            if since_of(request.url) == WINDOW_A:
                await asyncio.sleep(30)
            return httpx.Response(200, text=line("example.com/fast", "v1.0.0"))

        index = await scrape_async(
            WINDOW_A, RANGE_END, max_workers=2, config=config, transport=httpx.MockTransport(handler)
        )

        assert index.paths() == ["example.com/fast"]
        statuses = {since_of(o.url): o.status for o in index.report.outcomes}
        assert statuses == {WINDOW_A: "cancelled", WINDOW_B: "ok"}

    @pytest.mark.asyncio
    async def test_progress_callback_sees_every_window(self, config, make_transport):
        calls = []
        urls = generate_urls("2023-01-01T00:00:00Z", "2023-01-03T00:00:00Z", config)

        await fetch_and_parse_async(
            urls,
            2,
            report_progress=True,
            config=config,
            progress=lambda i, total: calls.append((i, total)),
            transport=make_transport({}),
        )

        assert sorted(i for i, _ in calls) == [1, 2, 3, 4]
        assert {total for _, total in calls} == {4}

    @pytest.mark.asyncio
    async def test_progress_disabled_ignores_callback(self, config, make_transport):
        calls = []
        await scrape_async(
            WINDOW_A,
            RANGE_END,
            config=config,
            progress=lambda i, total: calls.append(i),
            transport=make_transport({}),
        )
        assert calls == []

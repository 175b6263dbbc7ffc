"""Tests for the HTTP fetch strategy."""

import httpx
import pytest

from chapter_aggregator.config import FetcherConfig
from chapter_aggregator.fetcher.http_fetcher import HttpFetcher

URL = "https://novel.example/b/the-long-road/chapter-1"


@pytest.mark.asyncio
async def test_fetch_returns_body_and_status():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["user_agent"] = request.headers["user-agent"]
        return httpx.Response(200, text="<html>chapter</html>")

    config = FetcherConfig(user_agent="TestAgent/1.0")
    async with HttpFetcher(config, transport=httpx.MockTransport(handler)) as fetcher:
        result = await fetcher.fetch(URL)

    assert result.success
    assert result.html == "<html>chapter</html>"
    assert result.final_url == URL
    assert seen["user_agent"] == "TestAgent/1.0"


@pytest.mark.asyncio
async def test_error_status_is_reported_not_raised():
    transport = httpx.MockTransport(lambda request: httpx.Response(403, text="denied"))

    async with HttpFetcher(FetcherConfig(), transport=transport) as fetcher:
        result = await fetcher.fetch(URL)

    assert not result.success
    assert result.status_code == 403
    assert result.error is None


@pytest.mark.asyncio
async def test_follows_redirects():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("chapter-1"):
            return httpx.Response(301, headers={"Location": URL + "-moved"})
        return httpx.Response(200, text="moved")

    async with HttpFetcher(FetcherConfig(), transport=httpx.MockTransport(handler)) as fetcher:
        result = await fetcher.fetch(URL)

    assert result.html == "moved"
    assert result.final_url == URL + "-moved"


@pytest.mark.asyncio
async def test_timeout_becomes_error_result():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    async with HttpFetcher(FetcherConfig(), transport=httpx.MockTransport(handler)) as fetcher:
        result = await fetcher.fetch(URL)

    assert result.status_code == 0
    assert result.error == "Request timeout"


@pytest.mark.asyncio
async def test_connection_error_becomes_error_result():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with HttpFetcher(FetcherConfig(), transport=httpx.MockTransport(handler)) as fetcher:
        result = await fetcher.fetch(URL)

    assert result.error == "Network error: connection refused"


@pytest.mark.asyncio
async def test_cookies_file_is_forwarded(tmp_path):
    cookies = tmp_path / "cookies.txt"
    cookies.write_text(
        "# Netscape HTTP Cookie File\n"
        "novel.example\tFALSE\t/\tFALSE\t4102444800\tcf_clearance\tabc123\n"
    )
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["cookie"] = request.headers.get("cookie")
        return httpx.Response(200, text="ok")

    config = FetcherConfig(cookies_file=cookies)
    async with HttpFetcher(config, transport=httpx.MockTransport(handler)) as fetcher:
        await fetcher.fetch(URL)

    assert seen["cookie"] == "cf_clearance=abc123"


@pytest.mark.asyncio
async def test_unreadable_cookies_file_is_skipped(tmp_path, caplog):
    config = FetcherConfig(cookies_file=tmp_path / "missing.txt")
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="ok"))

    async with HttpFetcher(config, transport=transport) as fetcher:
        result = await fetcher.fetch(URL)

    assert result.success
    assert "Could not load cookies" in caplog.text


@pytest.mark.asyncio
async def test_fetch_requires_context_manager():
    with pytest.raises(RuntimeError):
        await HttpFetcher(FetcherConfig()).fetch(URL)

"""
Tests for the SearXNG search client and context rendering.
"""

import httpx
import pytest

from chatrelay.config.models import SearchConfig
from chatrelay.search.base import NO_RESULTS_TEXT, SearchResult, render_context
from chatrelay.search.searxng import SearXNGSearch
from chatrelay.utils.errors import TransportError, UpstreamError

SAMPLE_RESULTS = {
    "results": [
        {
            "title": "Tokyo weather",
            "url": "https://weather.example/tokyo",
            "content": "Sunny, 24C",
            "engine": "duckduckgo",
        },
        {
            "title": "Forecast",
            "url": "https://forecast.example",
            "description": "Rain tomorrow",
        },
        {"title": "Third", "url": "https://third.example"},
    ]
}


def make_search(handler, base_url="http://searx.local/"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SearXNGSearch(base_url, client=client)


class TestSearXNGSearch:
    """Tests for SearXNGSearch.search."""

    @pytest.mark.asyncio
    async def test_request_shape(self):
        seen = {}

        def handler(request):
            seen["url"] = request.url
            return httpx.Response(200, json={"results": []})

        await make_search(handler).search("weather tokyo")

        assert seen["url"].path == "/search"
        assert seen["url"].host == "searx.local"
        assert seen["url"].params["q"] == "weather tokyo"
        assert seen["url"].params["format"] == "json"
        assert seen["url"].params["pageno"] == "1"

    @pytest.mark.asyncio
    async def test_maps_results(self):
        search = make_search(lambda request: httpx.Response(200, json=SAMPLE_RESULTS))
        results = await search.search("q")

        assert results[0] == SearchResult(
            title="Tokyo weather",
            url="https://weather.example/tokyo",
            snippet="Sunny, 24C",
            source_engine="duckduckgo",
        )
        assert results[1].snippet == "Rain tomorrow"
        assert results[2].snippet == ""

    @pytest.mark.asyncio
    async def test_respects_limit(self):
        search = make_search(lambda request: httpx.Response(200, json=SAMPLE_RESULTS))
        results = await search.search("q", limit=2)

        assert [r.title for r in results] == ["Tokyo weather", "Forecast"]

    @pytest.mark.asyncio
    async def test_skips_items_with_non_string_fields(self):
        payload = {
            "results": [
                {"title": 123, "url": "https://bad.example", "content": "x"},
                {"title": "Good", "url": ["not", "a", "string"]},
                {"title": "Kept", "url": "https://ok.example", "content": "fine"},
            ]
        }
        search = make_search(lambda request: httpx.Response(200, json=payload))

        results = await search.search("q", limit=1)

        assert [r.title for r in results] == ["Kept"]

    @pytest.mark.asyncio
    async def test_other_http_errors_are_upstream_errors(self):
        def handler(request):
            raise httpx.TooManyRedirects("redirect loop", request=request)

        with pytest.raises(UpstreamError, match="redirect loop"):
            await make_search(handler).search("q")

    @pytest.mark.asyncio
    async def test_missing_results_list(self):
        search = make_search(lambda request: httpx.Response(200, json={"answers": []}))
        assert await search.search("q") == []

    @pytest.mark.asyncio
    async def test_non_success_status(self):
        search = make_search(lambda request: httpx.Response(500))

        with pytest.raises(UpstreamError) as exc_info:
            await search.search("q")

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_forbidden_has_hint(self):
        search = make_search(lambda request: httpx.Response(403))

        with pytest.raises(UpstreamError) as exc_info:
            await search.search("q")

        assert "json format" in exc_info.value.hint

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        search = make_search(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(UpstreamError):
            await search.search("q")

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError):
            await make_search(handler).search("q")

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(TransportError, match="timed out"):
            await make_search(handler).search("q")

    def test_from_config(self):
        search = SearXNGSearch.from_config(
            SearchConfig(base_url="http://127.0.0.1:8888/", timeout=3)
        )
        assert search.base_url == "http://127.0.0.1:8888"
        assert search.timeout == 3


class TestRenderContext:
    """Tests for turning results into prompt text."""

    def test_empty_results(self):
        assert render_context([]) == NO_RESULTS_TEXT

    def test_numbered_blocks(self):
        context = render_context(
            [
                SearchResult(title="A", url="https://a.example", snippet="alpha"),
                SearchResult(title="B", url="https://b.example", snippet="beta", source_engine="bing"),
            ]
        )

        assert "## Source 1" in context
        assert "## Source 2" in context
        assert context.index("https://a.example") < context.index("https://b.example")
        assert "**Content**: alpha" in context
        assert "**Engine**: bing" in context
        assert context.count("**Engine**") == 1

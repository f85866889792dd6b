"""Tests for the static HTTP fetcher and HTML normalization."""

import asyncio

import httpx
import pytest

from pattern_tracker.errors import FetchError
from pattern_tracker.fetcher.config import FetcherConfig
from pattern_tracker.fetcher.http import HttpContentFetcher, parse_html
from pattern_tracker.fetcher.schemas import Snapshot

PAGE = """
<html>
  <head><title>Release  Notes</title><style>body { color: red }</style></head>
  <body>
    <nav><a href="/home">Home</a></nav>
    <main>
      <h1>Version 2.0</h1>
      <p>The <code>connect()</code> call is now async.</p>
      <ul>
        <li>Removed legacy client</li>
        <li><p>Added retries</p></li>
      </ul>
      <pre>await client.connect()</pre>
      <a href="/docs/migrate#step-1">Migration guide</a>
      <a href="/docs/migrate#step-2">Migration guide again</a>
      <a href="mailto:team@example.com">Mail</a>
      <img src="/img/diagram.png">
    </main>
    <script>console.log("tracking")</script>
  </body>
</html>
"""


class TestParseHtml:
    def test_title_and_text(self) -> None:
        parsed = parse_html("https://docs.example.com/notes", PAGE)

        assert parsed["title"] == "Release Notes"
        assert "connect() call is now async" in parsed["text"]
        assert "tracking" not in parsed["text"]
        assert "color: red" not in parsed["text"]

    def test_markdown_structure(self) -> None:
        parsed = parse_html("https://docs.example.com/notes", PAGE)
        markdown = parsed["markdown"]

        assert "# Version 2.0" in markdown
        assert "- Removed legacy client" in markdown
        assert "- Added retries" in markdown
        assert markdown.count("Added retries") == 1
        assert "```\nawait client.connect()\n```" in markdown

    def test_links_absolute_deduplicated(self) -> None:
        parsed = parse_html("https://docs.example.com/notes", PAGE)

        assert parsed["links"] == ["https://docs.example.com/docs/migrate"]
        assert parsed["images"] == ["https://docs.example.com/img/diagram.png"]

    def test_max_links(self) -> None:
        body = "".join(f'<a href="/p{i}">p{i}</a>' for i in range(10))
        parsed = parse_html("https://x.example.com/", body, max_links=3)
        assert len(parsed["links"]) == 3


def _fetcher(handler) -> HttpContentFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpContentFetcher(FetcherConfig(max_concurrency=2), client=client)


class TestHttpContentFetcher:
    @pytest.mark.asyncio
    async def test_fetch_returns_snapshot(self) -> None:
        fetcher = _fetcher(lambda request: httpx.Response(200, text=PAGE))

        snapshot = await fetcher.fetch("https://docs.example.com/notes")

        assert isinstance(snapshot, Snapshot)
        assert snapshot.status_code == 200
        assert snapshot.fetch_method == "static"
        assert snapshot.title == "Release Notes"
        assert snapshot.body == snapshot.markdown

    @pytest.mark.asyncio
    async def test_http_error_status_raises_fetch_error(self) -> None:
        fetcher = _fetcher(lambda request: httpx.Response(503, text="down"))

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("https://docs.example.com/notes")

        assert exc_info.value.status_code == 503
        assert exc_info.value.url == "https://docs.example.com/notes"

    @pytest.mark.asyncio
    async def test_timeout_raises_fetch_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        fetcher = _fetcher(handler)

        with pytest.raises(FetchError, match="Timed out"):
            await fetcher.fetch("https://docs.example.com/notes")

    @pytest.mark.asyncio
    async def test_slow_response_bounded_by_total_timeout(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, text=PAGE)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        fetcher = HttpContentFetcher(FetcherConfig(timeout_seconds=0.05), client=client)

        with pytest.raises(FetchError, match="Timed out"):
            await fetcher.fetch("https://docs.example.com/notes")

    @pytest.mark.asyncio
    async def test_connection_error_raises_fetch_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        fetcher = _fetcher(handler)

        with pytest.raises(FetchError, match="ConnectError"):
            await fetcher.fetch("https://docs.example.com/notes")

    @pytest.mark.asyncio
    async def test_close_keeps_injected_client(self) -> None:
        fetcher = _fetcher(lambda request: httpx.Response(200, text=PAGE))
        await fetcher.close()
        # Injected clients are owned by the caller
        snapshot = await fetcher.fetch("https://docs.example.com/notes")
        assert snapshot.status_code == 200


class TestSnapshot:
    def test_body_falls_back_to_text(self) -> None:
        snapshot = Snapshot(url="https://a.example.com", text="plain only")
        assert snapshot.body == "plain only"

    def test_content_round_trip(self) -> None:
        snapshot = Snapshot(url="https://a.example.com", markdown="# Hi", links=["https://b"])
        assert Snapshot.from_content(snapshot.to_content()) == snapshot

"""
Static HTTP content fetcher.

Fetches a page with httpx and normalizes it with BeautifulSoup:
- Boilerplate (script, style, nav, footer, header) is removed
- Visible text is whitespace-collapsed
- A markdown rendering keeps headings, list items and code blocks
- Links and images are resolved to absolute URLs

In-flight fetches are bounded by a semaphore shared across callers.
"""

import asyncio
import html
import logging
import re
import time
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from pattern_tracker.errors import FetchError
from pattern_tracker.fetcher.base import ContentFetcher
from pattern_tracker.fetcher.config import FetcherConfig
from pattern_tracker.fetcher.schemas import Snapshot

logger = logging.getLogger(__name__)

_BOILERPLATE_TAGS = ["script", "style", "nav", "footer", "header", "noscript", "svg"]
_BLOCK_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6", "p", "li", "pre", "blockquote"]


def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", html.unescape(text)).strip()


def html_to_markdown(soup: BeautifulSoup) -> str:
    """Render the block-level structure of a parsed page as markdown."""
    lines: list[str] = []
    for element in soup.find_all(_BLOCK_TAGS):
        # Nested blocks (li > p, blockquote > p) are rendered by their parent
        if element.find_parent(["pre", "li", "blockquote"]):
            continue
        name = element.name
        if name == "pre":
            code = element.get_text().strip("\n")
            if code:
                lines.append(f"```\n{code}\n```")
            continue
        text = _collapse(element.get_text(separator=" "))
        if not text:
            continue
        if name.startswith("h"):
            lines.append(f"{'#' * int(name[1])} {text}")
        elif name == "li":
            lines.append(f"- {text}")
        elif name == "blockquote":
            lines.append(f"> {text}")
        else:
            lines.append(text)
    return "\n\n".join(lines)


def parse_html(url: str, body: str, max_links: int = 200) -> dict:
    """Extract title, text, markdown, links and images from raw HTML."""
    soup = BeautifulSoup(body, "html.parser")

    title = _collapse(soup.title.get_text()) if soup.title else ""

    for element in soup(_BOILERPLATE_TAGS):
        element.decompose()

    links: list[str] = []
    seen: set[str] = set()
    for anchor in soup.find_all("a", href=True):
        href = urljoin(url, anchor["href"]).split("#", 1)[0]
        if urlparse(href).scheme in ("http", "https") and href not in seen:
            seen.add(href)
            links.append(href)
            if len(links) >= max_links:
                break

    images = []
    for img in soup.find_all("img", src=True):
        src = urljoin(url, img["src"])
        if src not in images:
            images.append(src)

    return {
        "title": title,
        "text": _collapse(soup.get_text(separator=" ")),
        "markdown": html_to_markdown(soup),
        "links": links,
        "images": images,
    }


class HttpContentFetcher(ContentFetcher):
    """
    Fetcher for statically rendered pages.

    Args:
        config: Fetcher settings (concurrency, timeout, user agent)
        client: Optional pre-built httpx client (tests inject a mock transport)
    """

    def __init__(
        self,
        config: FetcherConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or FetcherConfig()
        self._client = client
        self._owns_client = client is None
        self._semaphore = asyncio.Semaphore(self._config.max_concurrency)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.timeout_seconds),
                follow_redirects=True,
                headers={"User-Agent": self._config.user_agent},
            )
        return self._client

    async def fetch(self, url: str) -> Snapshot:
        async with self._semaphore:
            start = time.monotonic()
            try:
                # httpx timeouts are per phase; this bounds the whole fetch
                response = await asyncio.wait_for(
                    self._get_client().get(url), self._config.timeout_seconds
                )
                response.raise_for_status()
            except (httpx.TimeoutException, asyncio.TimeoutError) as e:
                raise FetchError(
                    f"Timed out after {self._config.timeout_seconds}s", url=url
                ) from e
            except httpx.HTTPStatusError as e:
                raise FetchError(
                    f"HTTP {e.response.status_code}",
                    url=url,
                    status_code=e.response.status_code,
                ) from e
            except httpx.HTTPError as e:
                raise FetchError(f"{type(e).__name__}: {e}", url=url) from e

            duration_ms = int((time.monotonic() - start) * 1000)

        parsed = parse_html(str(response.url), response.text, self._config.max_links)
        logger.debug("Fetched %s in %dms", url, duration_ms)
        return Snapshot(
            url=url,
            fetch_method="static",
            fetch_duration_ms=duration_ms,
            status_code=response.status_code,
            **parsed,
        )

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

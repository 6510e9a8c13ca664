"""Web Crawler — fetches pages with httpx and extracts readable text with BeautifulSoup.

Invariants:
    - crawl_page never raises: failures return a CrawledPage with error set
    - script/style/noscript/iframe/nav/footer stripped before text extraction
    - Text truncated to max_chars; retries only on transport errors and 5xx

Design Decisions:
    - lxml parser: fast and tolerant of broken markup
    - crawl_site follows same-host links breadth-first up to max_pages, keyed on normalize_url
"""

import asyncio
import logging
from dataclasses import dataclass, field
from urllib.parse import urldefrag, urljoin, urlparse, urlsplit, urlunsplit

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

_STRIP_TAGS = ["script", "style", "noscript", "iframe", "nav", "footer", "svg"]
_USER_AGENT = "Mozilla/5.0 (compatible; DonorCrmBot/1.0)"


@dataclass
class CrawledPage:
    url: str
    title: str = ""
    text: str = ""
    links: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.text)


def extract_page(url: str, html: str, max_chars: int) -> CrawledPage:
    """Parse HTML into title, visible text, and absolute same-host links."""
    soup = BeautifulSoup(html, "lxml")
    for element in soup(_STRIP_TAGS):
        element.decompose()
    title = soup.title.get_text(strip=True) if soup.title else ""
    text = soup.get_text(separator=" ", strip=True)[:max_chars]

    host = urlparse(url).netloc
    links: list[str] = []
    for a in soup.find_all("a", href=True):
        absolute = normalize_url(urljoin(url, a["href"]))
        parsed = urlparse(absolute)
        if parsed.scheme in ("http", "https") and parsed.netloc == host:
            if absolute not in links:
                links.append(absolute)
    return CrawledPage(url=url, title=title, text=text, links=links)


def normalize_url(url: str) -> str:
    """Crawl identity of a URL: fragment dropped, empty path becomes '/'."""
    absolute, _ = urldefrag(url)
    parts = urlsplit(absolute)
    if not parts.path:
        parts = parts._replace(path="/")
    return urlunsplit(parts)


class WebCrawler:
    """Fetches and extracts pages with bounded retries."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        timeout_seconds: float = 10.0,
        max_retries: int = 2,
        max_chars: int = 50_000,
    ):
        self._http = http
        self._timeout = timeout_seconds
        self._max_retries = max_retries
        self._max_chars = max_chars

    async def crawl_page(self, url: str) -> CrawledPage:
        last_error = "unknown error"
        for attempt in range(self._max_retries + 1):
            try:
                response = await self._http.get(
                    url,
                    timeout=self._timeout,
                    follow_redirects=True,
                    headers={"User-Agent": _USER_AGENT},
                )
            except httpx.HTTPError as e:
                last_error = f"transport error: {e}"
                logger.warning(
                    f"Crawl attempt {attempt + 1} failed for {url}: {e}",
                    extra={"url": url, "attempt": attempt + 1},
                )
                continue
            if response.status_code >= 500:
                last_error = f"HTTP {response.status_code}"
                continue
            if response.status_code >= 400:
                return CrawledPage(url=url, error=f"HTTP {response.status_code}")
            return extract_page(str(response.url), response.text, self._max_chars)
        return CrawledPage(url=url, error=last_error)

    async def crawl_many(self, urls: list[str]) -> list[CrawledPage]:
        """Crawl URLs concurrently; results keep input order."""
        return list(await asyncio.gather(*(self.crawl_page(u) for u in urls)))

    async def crawl_site(self, start_url: str, max_pages: int = 5) -> list[CrawledPage]:
        """Breadth-first crawl restricted to the start URL's host.

        URLs are compared in normalized form; a page reached through a redirect
        to an already crawled URL is not counted twice.
        """
        queue = [normalize_url(start_url)]
        seen: set[str] = set()
        pages: list[CrawledPage] = []
        while queue and len(pages) < max_pages:
            url = queue.pop(0)
            if url in seen:
                continue
            seen.add(url)
            page = await self.crawl_page(url)
            final_url = normalize_url(page.url)
            if final_url != url and final_url in seen:
                continue
            seen.add(final_url)
            if not page.ok:
                continue
            pages.append(page)
            queue.extend(link for link in page.links if link not in seen)
        return pages

"""Article scraping: concurrent page fetches with per-URL failure isolation."""

import asyncio

import httpx
import trafilatura
from loguru import logger

from deadline.config import Settings, get_settings
from deadline.services.content_extractor import (
    ContentExtractor,
    ScrapedArticle,
    collapse_whitespace,
    domain_title,
    extract_title_from_html,
)


BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

MAX_FULL_TEXT_LENGTH = 8000


class ArticleScraper:
    """Fetches candidate URLs and hands the HTML to the content extractor."""

    def __init__(
        self,
        settings: Settings | None = None,
        extractor: ContentExtractor | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self.extractor = extractor or ContentExtractor()
        self.transport = transport

    async def _fetch_html(self, url: str, timeout: float) -> str | None:
        """GET a page, cancelled after `timeout` seconds. None on any failure."""

        async def fetch() -> httpx.Response:
            async with httpx.AsyncClient(
                timeout=timeout,
                transport=self.transport,
                headers=BROWSER_HEADERS,
                follow_redirects=True,
            ) as client:
                return await client.get(url)

        try:
            response = await asyncio.wait_for(fetch(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[SCRAPE] Timed out after {timeout}s: {url}")
            return None
        except httpx.HTTPError as e:
            logger.warning(f"[SCRAPE] Error fetching {url}: {e!r}")
            return None

        if not response.is_success:
            logger.warning(f"[SCRAPE] Failed to fetch {url}: {response.status_code}")
            return None

        return response.text

    async def scrape(self, url: str) -> ScrapedArticle | None:
        """Fetch one URL and extract its article text."""
        html = await self._fetch_html(url, self.settings.scrape_timeout)
        if html is None:
            return None
        return self.extractor.extract(html, url)

    async def scrape_many(self, urls: list[str]) -> list[ScrapedArticle]:
        """
        Scrape all URLs concurrently.

        One failure never cancels its siblings; the result holds only articles
        with more than `min_article_length` characters of content.
        """
        if not urls:
            return []

        logger.info(f"[SCRAPE] Scraping content from {len(urls)} articles...")
        results = await asyncio.gather(
            *[self.scrape(url) for url in urls],
            return_exceptions=True,
        )

        articles = []
        for url, result in zip(urls, results):
            if isinstance(result, Exception):
                logger.error(f"[SCRAPE] Unexpected failure for {url}: {result!r}")
                continue
            if result is None:
                continue
            if len(result.content) > self.settings.min_article_length:
                articles.append(result)

        logger.info(f"[SCRAPE] Successfully scraped {len(articles)}/{len(urls)} articles")
        return articles

    async def fetch_text(self, url: str) -> str:
        """
        Full-page text for update analysis.

        Uses trafilatura's main-text extraction and falls back to the
        heuristic extractor. Returns "" when nothing could be fetched.
        """
        html = await self._fetch_html(url, self.settings.update_fetch_timeout)
        if not html:
            return ""

        text = None
        try:
            text = trafilatura.extract(
                html,
                include_comments=False,
                include_tables=False,
                favor_precision=True,
            )
        except Exception as e:
            logger.debug(f"[SCRAPE] trafilatura failed for {url}: {e}")

        if not text:
            text = self.extractor.extract(html, url).content

        return collapse_whitespace(text)[:MAX_FULL_TEXT_LENGTH]

    async def fetch_title(self, url: str) -> str:
        """Cleaned page title, or a title made from the domain if the fetch fails."""
        html = await self._fetch_html(url, self.settings.scrape_timeout)
        if not html:
            return domain_title(url)
        return extract_title_from_html(html, url)

"""
Web Search Client

Wraps the Google Custom Search JSON API:
- requests several result pages sequentially with a short delay between them
- skips any page that fails (transport error, non-2xx, HTML or invalid JSON)
- deduplicates by link and drops blocked domains and empty results
"""

import asyncio
import json
from typing import Any
from urllib.parse import urlparse

import httpx
from loguru import logger
from pydantic import BaseModel

from deadline.config import Settings, get_settings
from deadline.exceptions import ConfigurationError


CUSTOM_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"
RESULTS_PER_PAGE = 10

# Metatags checked (in order) for a publication date
PUBLISHED_DATE_METATAGS = (
    "article:published_time",
    "og:updated_time",
    "article:modified_time",
    "pubdate",
    "date",
)


class SearchResult(BaseModel):
    """One normalized web search hit."""

    title: str
    snippet: str
    link: str
    display_link: str = ""
    published_date: str | None = None
    full_content: str | None = None


def is_html_response(body: str) -> bool:
    """Detect an HTML error page returned where JSON was expected."""
    head = body.lstrip()[:15].lower()
    return head.startswith("<!doctype") or head.startswith("<html")


def parse_json_body(body: str) -> dict | None:
    """Parse a provider response body, returning None for anything but a JSON object."""
    if is_html_response(body):
        return None
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _first_entry(entries: Any) -> dict:
    if isinstance(entries, list) and entries and isinstance(entries[0], dict):
        return entries[0]
    return {}


def extract_published_date(item: dict[str, Any]) -> str | None:
    """Read the publication date from a result's pagemap, if any."""
    pagemap = item.get("pagemap")
    if not isinstance(pagemap, dict):
        return None

    first_tags = _first_entry(pagemap.get("metatags"))
    for key in PUBLISHED_DATE_METATAGS:
        if first_tags.get(key):
            return first_tags[key]

    for section in ("newsarticle", "article"):
        entry = _first_entry(pagemap.get(section))
        if entry.get("datepublished"):
            return entry["datepublished"]

    return None


def _hostname(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def host_matches(host: str, domain: str) -> bool:
    """True if `host` is `domain` or one of its subdomains."""
    return host == domain or host.endswith("." + domain)


def is_excluded(result: SearchResult, exclude_domains: list[str]) -> bool:
    """True if the link host or display domain is on the blocklist."""
    hosts = {_hostname(result.link), result.display_link.strip().lower()} - {""}
    return any(
        host_matches(host, excluded.lower()) for host in hosts for excluded in exclude_domains
    )


def filter_results(results: list[SearchResult], exclude_domains: list[str]) -> list[SearchResult]:
    """Deduplicate by link, drop blocked domains and results without title or snippet."""
    seen: set[str] = set()
    filtered = []
    for result in results:
        if result.link in seen:
            continue
        seen.add(result.link)

        if is_excluded(result, exclude_domains):
            continue
        if not result.title.strip() or not result.snippet.strip():
            continue

        filtered.append(result)
    return filtered


class WebSearchClient:
    """Paginated Google Custom Search client."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self.transport = transport

    def _credentials(self) -> tuple[str, str]:
        api_key = self.settings.google_api_key
        engine_id = self.settings.google_search_engine_id
        if not api_key or not engine_id:
            raise ConfigurationError("Google API credentials not configured")
        return api_key, engine_id

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.search_timeout,
            transport=self.transport,
            headers={"Accept": "application/json"},
        )

    async def search(
        self,
        query: str,
        page_count: int | None = None,
        exclude_domains: list[str] | None = None,
        date_restrict_days: int | None = None,
    ) -> list[SearchResult]:
        """
        Search the web for a query.

        Args:
            query: Search query
            page_count: Number of result pages to request (10 results each)
            exclude_domains: Domain blocklist, defaults to the configured one
            date_restrict_days: Only return content from the last N days

        Returns:
            Filtered, deduplicated results in provider order
        """
        api_key, engine_id = self._credentials()
        page_count = page_count or self.settings.search_page_count
        if exclude_domains is None:
            exclude_domains = self.settings.excluded_domains

        all_results: list[SearchResult] = []

        async with self._client() as client:
            for page in range(page_count):
                params = {
                    "key": api_key,
                    "cx": engine_id,
                    "q": query,
                    "num": RESULTS_PER_PAGE,
                    "start": page * RESULTS_PER_PAGE + 1,
                }
                if date_restrict_days is not None:
                    params["dateRestrict"] = f"d{max(date_restrict_days, 1)}"
                    params["sort"] = "date"

                page_results = await self._fetch_page(client, params, page + 1)
                all_results.extend(page_results)

                if page < page_count - 1 and self.settings.search_page_delay > 0:
                    await asyncio.sleep(self.settings.search_page_delay)

        filtered = filter_results(all_results, exclude_domains)
        logger.info(
            f"[SEARCH] '{query[:60]}': {len(all_results)} results, {len(filtered)} after filtering"
        )
        return filtered

    async def _fetch_page(
        self,
        client: httpx.AsyncClient,
        params: dict,
        page_number: int,
    ) -> list[SearchResult]:
        """Fetch one page of results; any failure yields an empty page."""
        try:
            response = await client.get(CUSTOM_SEARCH_URL, params=params)
        except httpx.HTTPError as e:
            logger.warning(f"[SEARCH] Page {page_number} request failed: {e!r}")
            return []

        if not response.is_success:
            logger.warning(f"[SEARCH] Page {page_number} failed: {response.status_code}")
            return []

        data = parse_json_body(response.text)
        if data is None:
            logger.warning(f"[SEARCH] Invalid response for page {page_number}, skipping")
            return []

        if data.get("error"):
            logger.warning(f"[SEARCH] API error on page {page_number}: {data['error']}")
            return []

        items = data.get("items") or []
        if not isinstance(items, list):
            logger.warning(f"[SEARCH] Unexpected items on page {page_number}, skipping")
            return []

        results = []
        for item in items:
            if not isinstance(item, dict) or not item.get("link"):
                continue
            results.append(
                SearchResult(
                    title=item.get("title") or "",
                    snippet=item.get("snippet") or "",
                    link=item["link"],
                    display_link=item.get("displayLink") or "",
                    published_date=extract_published_date(item),
                )
            )

        logger.debug(f"[SEARCH] Page {page_number}: {len(results)} results")
        return results

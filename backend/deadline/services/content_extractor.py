"""
HTML Content Extractor

Isolates the main article text of an arbitrary news page.

Fallback chain (first result of MIN_SUFFICIENT_LENGTH chars wins, otherwise
the longest candidate seen is kept):
1. Largest <article>, <main> or content-labelled <div>
2. Concatenated <p> text
3. Concatenated text of top-level <div> blocks
4. <meta name="description">

Scripts and styles are removed before any of the above runs.
"""

import html as html_lib
import re
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from loguru import logger
from pydantic import BaseModel


MIN_SUFFICIENT_LENGTH = 200
MAX_CONTENT_LENGTH = 4000
MAX_TITLE_LENGTH = 120
MIN_TITLE_SEGMENT_LENGTH = 20

CONTENT_CLASS_PATTERN = re.compile(r"content|article|post|story|news", re.IGNORECASE)

# Separators between headline and site name. A bare hyphen only counts when
# surrounded by spaces so "well-known" is not split.
TITLE_SEPARATOR_PATTERN = re.compile(r"\s+[|—–-]\s+|\s*\|\s*")


class ScrapedArticle(BaseModel):
    """Article text extracted from a fetched page (in-memory only)."""

    url: str
    title: str = ""
    content: str = ""
    source: str = ""


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces."""
    return re.sub(r"\s+", " ", text or "").strip()


def source_domain(url: str) -> str:
    """Hostname of a URL without the leading www."""
    try:
        hostname = urlparse(url).hostname or ""
    except ValueError:
        return ""
    return hostname.removeprefix("www.")


def domain_title(url: str) -> str:
    """Fallback title built from the domain: news.example.com -> News."""
    domain = source_domain(url)
    if not domain:
        return ""
    return domain.split(".")[0].capitalize()


def _text_of(element) -> str:
    return collapse_whitespace(element.get_text(" "))


def parse_html(html: str) -> BeautifulSoup:
    """Parse HTML and drop <script> and <style> elements."""
    soup = BeautifulSoup(html or "", "lxml")
    # Must run before any text heuristic, script text pollutes content
    for tag in soup(["script", "style"]):
        tag.decompose()
    return soup


def _meta_content(soup: BeautifulSoup, **attrs) -> str:
    tag = soup.find("meta", attrs=attrs)
    if tag and tag.get("content"):
        return collapse_whitespace(html_lib.unescape(tag["content"]))
    return ""


class ContentExtractor:
    """Heuristic main-text and title extraction from raw HTML."""

    def __init__(
        self,
        min_sufficient_length: int = MIN_SUFFICIENT_LENGTH,
        max_content_length: int = MAX_CONTENT_LENGTH,
    ):
        self.min_sufficient_length = min_sufficient_length
        self.max_content_length = max_content_length

    def extract(self, html: str, source_url: str) -> ScrapedArticle:
        """
        Extract title and main text from a page.

        Never raises: unusable input yields an article with empty content,
        which callers drop by length.
        """
        try:
            soup = parse_html(html)
            title = self.extract_title(soup, source_url)
            content = self._extract_content(soup)
        except Exception as e:  # malformed markup must not break a batch
            logger.warning(f"[EXTRACTOR] Failed to parse {source_url}: {e}")
            title, content = "", ""

        return ScrapedArticle(
            url=source_url,
            title=title,
            content=content[: self.max_content_length],
            source=source_domain(source_url),
        )

    def _extract_content(self, soup: BeautifulSoup) -> str:
        strategies = (
            ("content_block", self._content_block_text),
            ("paragraphs", self._paragraph_text),
            ("divs", self._div_text),
            ("meta_description", self._meta_description),
        )

        best = ""
        for name, strategy in strategies:
            candidate = strategy(soup)
            if len(candidate) > len(best):
                best = candidate
            if len(best) >= self.min_sufficient_length:
                logger.debug(f"[EXTRACTOR] Using {name} ({len(best)} chars)")
                break

        return best

    @staticmethod
    def _content_block_text(soup: BeautifulSoup) -> str:
        blocks = soup.find_all(["article", "main"])
        blocks += soup.find_all("div", class_=CONTENT_CLASS_PATTERN)
        texts = [_text_of(block) for block in blocks]
        return max(texts, key=len, default="")

    @staticmethod
    def _paragraph_text(soup: BeautifulSoup) -> str:
        paragraphs = (_text_of(p) for p in soup.find_all("p"))
        return " ".join(p for p in paragraphs if p)

    @staticmethod
    def _div_text(soup: BeautifulSoup) -> str:
        # Top-level divs only; nested text is reached through get_text
        top_level = [div for div in soup.find_all("div") if div.find_parent("div") is None]
        texts = (_text_of(div) for div in top_level)
        return " ".join(t for t in texts if t)

    @staticmethod
    def _meta_description(soup: BeautifulSoup) -> str:
        return _meta_content(soup, name="description")

    def extract_title(self, soup: BeautifulSoup, source_url: str = "") -> str:
        """
        Pick the best headline for a page.

        Priority: og:title > twitter:title > <title> > first <h1>, then the
        site name suffix is removed and long titles are truncated.
        """
        title = _meta_content(soup, property="og:title") or _meta_content(soup, name="twitter:title")

        if not title and soup.title and soup.title.string:
            title = collapse_whitespace(html_lib.unescape(soup.title.string))

        if not title:
            h1 = soup.find("h1")
            if h1:
                title = _text_of(h1)

        if not title:
            return domain_title(source_url)

        return clean_title(title, site_name=_meta_content(soup, property="og:site_name"))


def clean_title(title: str, site_name: str = "") -> str:
    """Strip the site name suffix and truncate a page title."""
    title = collapse_whitespace(title)

    if site_name and site_name in title:
        title = title.replace(f" - {site_name}", "").replace(f" | {site_name}", "").strip()

    parts = TITLE_SEPARATOR_PATTERN.split(title)
    if len(parts) > 1 and len(parts[0].strip()) > MIN_TITLE_SEGMENT_LENGTH:
        title = parts[0].strip()

    if len(title) > MAX_TITLE_LENGTH:
        title = title[: MAX_TITLE_LENGTH - 3] + "..."

    return title


def extract_title_from_html(html: str, source_url: str = "") -> str:
    """Convenience wrapper used by the title endpoint."""
    try:
        soup = parse_html(html)
    except Exception as e:
        logger.warning(f"[EXTRACTOR] Failed to parse title from {source_url}: {e}")
        return domain_title(source_url)
    return ContentExtractor().extract_title(soup, source_url)

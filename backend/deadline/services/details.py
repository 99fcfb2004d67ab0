"""
Detail extraction pipeline.

search -> scrape -> image discovery -> LLM structuring -> EventDetails.
Nothing is written unless the LLM step succeeds; the details row and the
event frontier are committed together.
"""

from typing import Any

from loguru import logger
from pydantic import BaseModel
from sqlmodel.ext.asyncio.session import AsyncSession

from deadline.config import Settings, get_settings
from deadline.exceptions import DeadlineError, NoArticlesFound
from deadline.models import utcnow
from deadline.services.content_extractor import ScrapedArticle
from deadline.services.extraction import EventExtractionClient
from deadline.services.images import ImageSearchClient
from deadline.services.persistence import EventGateway
from deadline.services.revalidation import CacheRevalidator
from deadline.services.scraper import ArticleScraper
from deadline.services.search import WebSearchClient


class DetailExtractionResult(BaseModel):
    """Outcome of one detail extraction run."""

    event_id: int
    event_title: str
    query_used: str
    data: dict[str, Any]
    articles: list[ScrapedArticle]

    @property
    def articles_scraped(self) -> int:
        return len(self.data.get("sources", []))

    @property
    def images_found(self) -> int:
        return len(self.data.get("images", []))

    @property
    def sources_analyzed(self) -> str:
        """Comma-separated list of distinct source domains."""
        return ", ".join(dict.fromkeys(article.source for article in self.articles))

    @property
    def details_length(self) -> int:
        details = self.data.get("details") or {}
        return len(details.get("overview", "")) if isinstance(details, dict) else len(str(details))

    @property
    def total_content_analyzed(self) -> int:
        return sum(len(article.content) for article in self.articles)

    def party_count(self, field: str) -> int:
        parties = self.data.get(field) or {}
        if isinstance(parties, dict):
            return sum(len(group) for group in parties.values() if isinstance(group, list))
        return len(parties)


def unique_source_urls(articles: list[ScrapedArticle], min_length: int) -> list[str]:
    """URLs of the articles that fed the LLM, deduplicated, in scrape order."""
    urls = [article.url for article in articles if article.url and len(article.content) > min_length]
    return list(dict.fromkeys(urls))


class DetailExtractionPipeline:
    """Builds the structured details of one event from the open web."""

    def __init__(
        self,
        session: AsyncSession,
        search_client: WebSearchClient,
        image_client: ImageSearchClient,
        scraper: ArticleScraper,
        extraction_client: EventExtractionClient,
        revalidator: CacheRevalidator,
        settings: Settings | None = None,
    ):
        self.gateway = EventGateway(session)
        self.search_client = search_client
        self.image_client = image_client
        self.scraper = scraper
        self.extraction_client = extraction_client
        self.revalidator = revalidator
        self.settings = settings or get_settings()

    async def run(self, event_id: int) -> DetailExtractionResult:
        """
        Run the pipeline for an event.

        Raises:
            EventNotFound: the event does not exist
            NoArticlesFound: nothing usable was scraped (nothing is written)
            LLMResponseError: the model output held no JSON object
            PersistenceError: the database rejected the write
        """
        event = await self.gateway.get_event(event_id)
        if not event.query:
            raise DeadlineError(f"Event {event_id} has no search query")

        logger.info(f"[DETAILS] Event {event_id}: {event.title}")
        logger.info(f"[DETAILS] Query: {event.query}")

        results = await self.search_client.search(event.query)
        urls = [result.link for result in results[: self.settings.scrape_max_articles]]
        articles = await self.scraper.scrape_many(urls)

        if not articles:
            raise NoArticlesFound("No articles found or scraped")

        images = await self.image_client.search_images(event.query)
        logger.info(f"[DETAILS] Scraped {len(articles)} articles and found {len(images)} images")

        analyzed = await self.extraction_client.extract(articles, results, event.query)

        data = {
            **analyzed,
            "sources": unique_source_urls(articles, self.settings.min_article_length),
            "images": images,
        }

        try:
            await self.gateway.upsert_event_details(event_id, data)
            await self.gateway.update_event(event_id, last_updated=utcnow())
            await self.gateway.commit()
        except DeadlineError:
            await self.gateway.rollback()
            raise

        await self.revalidator.revalidate_event(event_id)

        result = DetailExtractionResult(
            event_id=event_id,
            event_title=event.title or "",
            query_used=event.query,
            data=data,
            articles=articles,
        )
        logger.info(
            f"[DETAILS] Complete: {result.articles_scraped} sources, {result.images_found} images, "
            f"timeline entries: {len(data.get('timeline') or [])}"
        )
        return result

"""FastAPI dependencies that build the pipeline's collaborators."""

from fastapi import Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from deadline.config import Settings, get_settings
from deadline.database import get_session
from deadline.services.details import DetailExtractionPipeline
from deadline.services.extraction import EventExtractionClient
from deadline.services.images import ImageSearchClient
from deadline.services.llm import GeminiProvider, LLMProvider
from deadline.services.revalidation import CacheRevalidator
from deadline.services.scraper import ArticleScraper
from deadline.services.search import WebSearchClient
from deadline.services.updates import UpdateDetector


def get_search_client(settings: Settings = Depends(get_settings)) -> WebSearchClient:
    return WebSearchClient(settings)


def get_image_client(settings: Settings = Depends(get_settings)) -> ImageSearchClient:
    return ImageSearchClient(settings)


def get_scraper(settings: Settings = Depends(get_settings)) -> ArticleScraper:
    return ArticleScraper(settings)


def get_llm_provider(settings: Settings = Depends(get_settings)) -> LLMProvider:
    return GeminiProvider(settings)


def get_revalidator(settings: Settings = Depends(get_settings)) -> CacheRevalidator:
    return CacheRevalidator(settings)


def get_detail_pipeline(
    session: AsyncSession = Depends(get_session),
    search_client: WebSearchClient = Depends(get_search_client),
    image_client: ImageSearchClient = Depends(get_image_client),
    scraper: ArticleScraper = Depends(get_scraper),
    llm: LLMProvider = Depends(get_llm_provider),
    revalidator: CacheRevalidator = Depends(get_revalidator),
    settings: Settings = Depends(get_settings),
) -> DetailExtractionPipeline:
    return DetailExtractionPipeline(
        session,
        search_client,
        image_client,
        scraper,
        EventExtractionClient(llm),
        revalidator,
        settings,
    )


def get_update_detector(
    session: AsyncSession = Depends(get_session),
    search_client: WebSearchClient = Depends(get_search_client),
    scraper: ArticleScraper = Depends(get_scraper),
    llm: LLMProvider = Depends(get_llm_provider),
    revalidator: CacheRevalidator = Depends(get_revalidator),
    settings: Settings = Depends(get_settings),
) -> UpdateDetector:
    return UpdateDetector(session, search_client, scraper, llm, revalidator, settings)


def build_detail_pipeline(session: AsyncSession, settings: Settings | None = None) -> DetailExtractionPipeline:
    """Wire a pipeline outside a request (worker tasks)."""
    settings = settings or get_settings()
    return DetailExtractionPipeline(
        session,
        WebSearchClient(settings),
        ImageSearchClient(settings),
        ArticleScraper(settings),
        EventExtractionClient(GeminiProvider(settings)),
        CacheRevalidator(settings),
        settings,
    )


def build_update_detector(session: AsyncSession, settings: Settings | None = None) -> UpdateDetector:
    """Wire an update detector outside a request (worker tasks)."""
    settings = settings or get_settings()
    return UpdateDetector(
        session,
        WebSearchClient(settings),
        ArticleScraper(settings),
        GeminiProvider(settings),
        CacheRevalidator(settings),
        settings,
    )

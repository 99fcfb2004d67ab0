"""Pytest fixtures for testing."""

from datetime import datetime

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from deadline import models  # noqa: F401 - registers tables on SQLModel.metadata
from deadline.config import Settings, get_settings
from deadline.database import get_session
from deadline.dependencies import (
    get_image_client,
    get_llm_provider,
    get_revalidator,
    get_scraper,
    get_search_client,
)
from deadline.main import create_app
from deadline.models import Event
from deadline.services.content_extractor import ScrapedArticle, source_domain
from deadline.services.extraction_schemas import UpdateAnalysis
from deadline.services.search import SearchResult

API_KEY = "test-secret"


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================


class FakeSearchClient:
    """Returns canned results and records every call."""

    def __init__(self, results: list[SearchResult] | None = None):
        self.results = results or []
        self.calls: list[dict] = []

    async def search(self, query, page_count=None, exclude_domains=None, date_restrict_days=None):
        self.calls.append(
            {"query": query, "page_count": page_count, "date_restrict_days": date_restrict_days}
        )
        return list(self.results)


class FakeImageClient:
    def __init__(self, images: list[str] | None = None):
        self.images = images or []

    async def search_images(self, query):
        return list(self.images)


class FakeScraper:
    """Serves article content by URL; unknown URLs behave like failed fetches."""

    def __init__(self, pages: dict[str, str] | None = None, title: str = "Page title"):
        self.pages = pages or {}
        self.title = title
        self.fetched: list[str] = []

    async def scrape_many(self, urls):
        self.fetched.extend(urls)
        return [
            ScrapedArticle(url=url, title=f"Title {url}", content=self.pages[url], source=source_domain(url))
            for url in urls
            if url in self.pages and len(self.pages[url]) > 100
        ]

    async def fetch_text(self, url):
        self.fetched.append(url)
        return self.pages.get(url, "")

    async def fetch_title(self, url):
        return self.title


class FakeLLM:
    """LLM provider double: canned text for complete(), canned model for structured()."""

    def __init__(self, text: str = "{}", analysis: UpdateAnalysis | None = None):
        self.text = text
        self.analysis = analysis or UpdateAnalysis()
        self.prompts: list[str] = []

    async def complete(self, prompt, json_mode=False):
        self.prompts.append(prompt)
        return self.text

    async def structured(self, prompt, response_model):
        self.prompts.append(prompt)
        return self.analysis


class FakeRevalidator:
    def __init__(self):
        self.events: list[int] = []
        self.tags: list[list[str]] = []

    async def revalidate(self, tags):
        self.tags.append(list(tags))
        return True

    async def revalidate_event(self, event_id, include_main=False):
        self.events.append(event_id)
        return True


def make_result(link: str, published_date: str | None = None, title: str = "Case news") -> SearchResult:
    return SearchResult(
        title=title,
        snippet=f"Snippet for {link}",
        link=link,
        display_link=source_domain(link),
        published_date=published_date,
    )


def make_event(event_id: int = 1, **kwargs) -> Event:
    return Event(
        event_id=event_id,
        slug=kwargs.pop("slug", f"event-{event_id}"),
        title=kwargs.pop("title", f"Event {event_id}"),
        query=kwargs.pop("query", "factory fire workers killed"),
        **kwargs,
    )


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def settings():
    """Settings isolated from the environment."""
    return Settings(
        _env_file=None,
        api_secret_key=API_KEY,
        google_api_key="google-key",
        google_search_engine_id="engine-id",
        gemini_api_key="gemini-key",
        search_page_delay=0,
        frontend_base_url=None,
    )


@pytest.fixture
async def async_engine():
    """Create an in-memory async engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def async_session(async_engine):
    """Create an async session for testing."""
    async with AsyncSession(async_engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def search_client():
    return FakeSearchClient()


@pytest.fixture
def image_client():
    return FakeImageClient(["https://cdn.example.com/photo.jpg"])


@pytest.fixture
def scraper():
    return FakeScraper()


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def revalidator():
    return FakeRevalidator()


@pytest.fixture
async def app(async_session, settings, search_client, image_client, scraper, llm, revalidator):
    """Create test application with overridden dependencies."""
    app = create_app()

    async def override_get_session():
        yield async_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_search_client] = lambda: search_client
    app.dependency_overrides[get_image_client] = lambda: image_client
    app.dependency_overrides[get_scraper] = lambda: scraper
    app.dependency_overrides[get_llm_provider] = lambda: llm
    app.dependency_overrides[get_revalidator] = lambda: revalidator
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client


@pytest.fixture
async def event(async_session):
    """A persisted event with a query and a frontier of 2024-01-01."""
    event = make_event(1, last_updated=datetime(2024, 1, 1))
    async_session.add(event)
    await async_session.commit()
    return event

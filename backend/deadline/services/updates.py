"""
Incremental Update Detector

Appends dated updates to an event from news published after its frontier
(`last_updated`):

    IDLE -> SEARCHING -> FILTERING -> SCRAPING -> ANALYZING -> PERSISTING -> IDLE

The date filter is strictly-greater-than and the frontier only moves forward,
so re-running the detector right after a successful run finds nothing new and
exits before any LLM call.
"""

import asyncio
import math
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum

from dateutil import parser as date_parser
from loguru import logger
from pydantic import BaseModel, Field
from sqlmodel.ext.asyncio.session import AsyncSession

from deadline.config import Settings, get_settings
from deadline.exceptions import DeadlineError, UpdateExtractionFailed
from deadline.models import EventStatus, EventUpdateCreate, utcnow
from deadline.services.extraction_schemas import UpdateAnalysis
from deadline.services.llm import LLMProvider
from deadline.services.persistence import EventGateway
from deadline.services.revalidation import CacheRevalidator
from deadline.services.scraper import ArticleScraper
from deadline.services.search import SearchResult, WebSearchClient


UNKNOWN_DATE = "unknown"

# Frontier used for events that were never updated
EPOCH = datetime(1970, 1, 1)


class UpdateState(str, Enum):
    IDLE = "IDLE"
    SEARCHING = "SEARCHING"
    FILTERING = "FILTERING"
    SCRAPING = "SCRAPING"
    ANALYZING = "ANALYZING"
    PERSISTING = "PERSISTING"


class UpdateOutcome(str, Enum):
    no_new_updates = "no_new_updates"
    updates_created = "updates_created"


class UpdateDebug(BaseModel):
    """Per-stage timings (ms) and counters reported with every response."""

    event_fetch_time: int = 0
    google_search_time: int = 0
    web_fetch_time: int = 0
    llm_analysis_time: int = 0
    database_insert_time: int = 0
    total_processing_time: int = 0
    search_results_count: int = 0
    filtered_results_count: int = 0
    selected_results_count: int = 0
    scraped_results_count: int = 0
    last_updated_date: str | None = None
    days_since_last_update: int = 0
    has_new_content: bool = False
    last_state: UpdateState = UpdateState.IDLE


class UpdateResult(BaseModel):
    """Result of a detector run that did not fail."""

    outcome: UpdateOutcome
    event_id: int
    last_updated: datetime | None = None
    total_search_results: int = 0
    new_articles_processed: int = 0
    status: str | None = None
    updates: list[EventUpdateCreate] = Field(default_factory=list)
    analysis: UpdateAnalysis | None = None
    debug: UpdateDebug


# =============================================================================
# DATE HANDLING
# =============================================================================


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_article_date(value: str | None, now: datetime | None = None) -> datetime | None:
    """
    Parse a publish date into naive UTC.

    Returns None for missing, unparseable or future dates, which are never
    treated as new content.
    """
    if not value:
        return None
    try:
        parsed = to_naive_utc(date_parser.parse(value))
    except (ValueError, OverflowError, TypeError):
        return None

    if parsed > (now or utcnow()):
        return None
    return parsed


def days_since(frontier: datetime, now: datetime) -> int:
    """Whole days (rounded up, at least 1) between the frontier and now."""
    seconds = (now - frontier).total_seconds()
    return max(math.ceil(seconds / 86400), 1)


def filter_newer(
    results: list[SearchResult],
    frontier: datetime,
    now: datetime | None = None,
) -> list[tuple[SearchResult, datetime]]:
    """Keep results published strictly after the frontier, paired with their date."""
    newer = []
    for result in results:
        published = parse_article_date(result.published_date, now)
        if published is not None and published > frontier:
            newer.append((result, published))
    return newer


def date_key(published: datetime | None) -> str:
    return published.date().isoformat() if published else UNKNOWN_DATE


def select_per_date(
    dated_results: list[tuple[SearchResult, datetime | None]],
    cap: int,
) -> list[tuple[SearchResult, datetime | None]]:
    """
    Cap how many results each calendar date contributes.

    Provider order is kept within a date; dates come out oldest first with
    the "unknown" bucket last.
    """
    buckets: dict[str, list[tuple[SearchResult, datetime | None]]] = {}
    for result, published in dated_results:
        bucket = buckets.setdefault(date_key(published), [])
        if len(bucket) < cap:
            bucket.append((result, published))

    ordered_keys = sorted(key for key in buckets if key != UNKNOWN_DATE)
    if UNKNOWN_DATE in buckets:
        ordered_keys.append(UNKNOWN_DATE)

    return [item for key in ordered_keys for item in buckets[key]]


def normalize_status(value: str | None) -> str:
    """Only an explicit "Justice" verdict counts; anything else is "Injustice"."""
    if value and value.strip().lower() == EventStatus.justice.value.lower():
        return EventStatus.justice.value
    return EventStatus.injustice.value


# =============================================================================
# PROMPT
# =============================================================================


def build_update_prompt(
    query: str,
    dated_results: list[tuple[SearchResult, datetime | None]],
    last_update_date: str,
) -> str:
    """Build the update analysis prompt from the selected articles."""
    articles = "\n---\n".join(
        f"""
[{index}]
Title: {result.title}
Date: {date_key(published) if published else 'Date unavailable'}
Snippet: {result.snippet}

Full Content:
{result.full_content or 'Content not available'}
"""
        for index, (result, published) in enumerate(dated_results, start=1)
    )

    return f"""You are analyzing case developments for: "{query}"

Last Update Date: {last_update_date}

Your task: extract what happened in the case from the news articles below. All
articles were published AFTER {last_update_date}; summarize the developments.

RULES:
1. DATE: use the article publication date in YYYY-MM-DD format
2. GROUPING: combine articles from the same date into one update
3. SORT: chronological order (oldest to newest)
4. TITLE: describe what happened (not the case name). Be specific and newsworthy
5. DESCRIPTION:
   - 2-4 compact sentences with all key facts, numbers, names and outcomes
   - Use **bold** ONCE on a 2-3 word key phrase
   - Be concise but complete
6. STATUS: "Justice" only if the articles clearly state that justice has been
   delivered. Until then always "Injustice"
7. NO speculation: only facts from the articles

---

NEWS ARTICLES:
{articles}
"""


# =============================================================================
# DETECTOR
# =============================================================================


class UpdateDetector:
    """Runs one incremental update pass for an event."""

    def __init__(
        self,
        session: AsyncSession,
        search_client: WebSearchClient,
        scraper: ArticleScraper,
        llm: LLMProvider,
        revalidator: CacheRevalidator,
        settings: Settings | None = None,
    ):
        self.gateway = EventGateway(session)
        self.search_client = search_client
        self.scraper = scraper
        self.llm = llm
        self.revalidator = revalidator
        self.settings = settings or get_settings()
        self.state = UpdateState.IDLE
        self.debug = UpdateDebug()
        self._event_id: int | None = None

    def _transition(self, state: UpdateState) -> None:
        logger.info(f"[UPDATES] Event {self._event_id}: {self.state.value} -> {state.value}")
        self.state = state
        if state != UpdateState.IDLE:
            self.debug.last_state = state

    @contextmanager
    def _timed(self, field: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            setattr(self.debug, field, int((time.perf_counter() - start) * 1000))

    async def run(self, event_id: int) -> UpdateResult:
        """
        Detect and persist new updates for an event.

        `self.debug` holds timings and counters even when this raises.

        Raises:
            EventNotFound: the event does not exist
            UpdateExtractionFailed: new articles existed but no valid update came back
            PersistenceError: the database rejected the write
        """
        self.debug = UpdateDebug()
        self.state = UpdateState.IDLE
        self._event_id = event_id
        started = time.perf_counter()

        try:
            return await self._run(event_id)
        finally:
            if self.state != UpdateState.IDLE:
                self._transition(UpdateState.IDLE)
            self.debug.total_processing_time = int((time.perf_counter() - started) * 1000)

    async def _run(self, event_id: int) -> UpdateResult:
        with self._timed("event_fetch_time"):
            event = await self.gateway.get_event(event_id)
        if not event.query:
            raise DeadlineError(f"Event {event_id} has no search query")

        now = utcnow()
        frontier = event.last_updated or EPOCH
        self.debug.last_updated_date = frontier.isoformat()
        self.debug.days_since_last_update = days_since(frontier, now)

        # SEARCHING
        self._transition(UpdateState.SEARCHING)
        with self._timed("google_search_time"):
            results = await self.search_client.search(
                event.query,
                page_count=self.settings.update_search_page_count,
                date_restrict_days=self.debug.days_since_last_update,
            )
        self.debug.search_results_count = len(results)

        # FILTERING
        self._transition(UpdateState.FILTERING)
        newer = filter_newer(results, frontier, now)
        self.debug.filtered_results_count = len(newer)
        self.debug.has_new_content = bool(newer)

        if not newer:
            logger.info(f"[UPDATES] Event {event_id}: no content newer than {frontier.isoformat()}")
            self._transition(UpdateState.IDLE)
            return UpdateResult(
                outcome=UpdateOutcome.no_new_updates,
                event_id=event_id,
                last_updated=event.last_updated,
                total_search_results=len(results),
                debug=self.debug,
            )

        selected = select_per_date(newer, self.settings.updates_per_date_cap)
        self.debug.selected_results_count = len(selected)

        # SCRAPING
        self._transition(UpdateState.SCRAPING)
        with self._timed("web_fetch_time"):
            texts = await asyncio.gather(*[self.scraper.fetch_text(result.link) for result, _ in selected])
        hydrated = [
            (result.model_copy(update={"full_content": text}), published)
            for (result, published), text in zip(selected, texts)
        ]
        self.debug.scraped_results_count = sum(1 for text in texts if text)

        # ANALYZING
        self._transition(UpdateState.ANALYZING)
        prompt = build_update_prompt(event.query, hydrated, frontier.isoformat())
        with self._timed("llm_analysis_time"):
            analysis = await self.llm.structured(prompt, UpdateAnalysis)

        allowed_dates = {date_key(published) for _, published in selected}
        records = self._valid_records(event_id, analysis, frontier, allowed_dates, now)
        if not records:
            raise UpdateExtractionFailed(
                f"LLM returned no valid updates for {len(selected)} new articles"
            )
        status = normalize_status(analysis.status)

        # PERSISTING
        self._transition(UpdateState.PERSISTING)
        new_frontier = max(
            [frontier, *(record.update_date for record in records), *(published for _, published in newer)]
        )
        scraped_urls = [result.link for result, _ in hydrated if result.full_content]

        with self._timed("database_insert_time"):
            try:
                await self.gateway.insert_updates(records)
                updated_event = await self.gateway.update_event(
                    event_id, last_updated=new_frontier, status=status
                )
                await self.gateway.merge_sources(event_id, scraped_urls)
                await self.gateway.commit()
            except DeadlineError:
                await self.gateway.rollback()
                raise

        await self.revalidator.revalidate_event(event_id)

        logger.info(
            f"[UPDATES] Event {event_id}: {len(records)} updates created, "
            f"frontier {frontier.isoformat()} -> {updated_event.last_updated.isoformat()}, status {status}"
        )
        self._transition(UpdateState.IDLE)

        return UpdateResult(
            outcome=UpdateOutcome.updates_created,
            event_id=event_id,
            last_updated=updated_event.last_updated,
            total_search_results=len(results),
            new_articles_processed=len(newer),
            status=status,
            updates=records,
            analysis=analysis,
            debug=self.debug,
        )

    def _valid_records(
        self,
        event_id: int,
        analysis: UpdateAnalysis,
        frontier: datetime,
        allowed_dates: set[str],
        now: datetime,
    ) -> list[EventUpdateCreate]:
        """
        Updates with a date, title and description, oldest first.

        A record must be dated after the frontier and on one of the dates of
        the articles that were sent to the LLM.
        """
        records = []
        for update in analysis.updates:
            if not (update.date and update.title and update.description):
                logger.warning(f"[UPDATES] Dropping incomplete update: {update!r}")
                continue
            update_date = parse_article_date(update.date, now)
            if update_date is None:
                logger.warning(f"[UPDATES] Dropping update with invalid date: {update.date!r}")
                continue
            if update_date <= frontier or date_key(update_date) not in allowed_dates:
                logger.warning(f"[UPDATES] Dropping update dated outside the new articles: {update.date!r}")
                continue
            records.append(
                EventUpdateCreate(
                    event_id=event_id,
                    title=update.title.strip(),
                    description=update.description.strip(),
                    update_date=update_date,
                )
            )
        return sorted(records, key=lambda record: record.update_date)

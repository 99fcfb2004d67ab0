"""Read endpoints used by the public website."""

from urllib.parse import urlparse

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from loguru import logger
from sqlmodel.ext.asyncio.session import AsyncSession

from deadline.auth import api_key_matches, request_api_key
from deadline.config import Settings, get_settings
from deadline.database import get_session
from deadline.dependencies import get_scraper
from deadline.exceptions import DeadlineError, EventNotFound
from deadline.models import Event, EventRead, EventUpdateRead
from deadline.services.persistence import EventGateway
from deadline.services.scraper import ArticleScraper

router = APIRouter(prefix="/get", tags=["public"])

EVENTS_CACHE_CONTROL = "public, s-maxage=3600, stale-while-revalidate=7200"
TITLE_CACHE_CONTROL = "public, max-age=31536000, s-maxage=31536000, immutable"


def unauthorized() -> JSONResponse:
    return JSONResponse(
        {"success": False, "error": "Invalid or missing API key"},
        status_code=status.HTTP_401_UNAUTHORIZED,
    )


async def resolve_event(gateway: EventGateway, event_id: int | None, slug: str | None) -> Event:
    """Look an event up by id, or by slug when no id is given."""
    if event_id is not None:
        return await gateway.get_event(event_id)
    return await gateway.get_event_by_slug(slug)


@router.get("/events")
async def list_events(
    session: AsyncSession = Depends(get_session),
    limit: int = Query(30, ge=1),
    offset: int = Query(0, ge=0),
):
    """Paginated event list, newest incident first."""
    limit = min(limit, 100)
    gateway = EventGateway(session)

    try:
        events, total = await gateway.list_events(limit, offset)
    except DeadlineError as e:
        return JSONResponse(
            {"error": "Failed to fetch events", "details": str(e), "events": []},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    body = {
        "events": [EventRead.model_validate(event).model_dump() for event in events],
        "pagination": {
            "limit": limit,
            "offset": offset,
            "total": total,
            "hasMore": offset + limit < total,
        },
    }
    return JSONResponse(
        jsonable_encoder(body),
        headers={
            "Cache-Control": EVENTS_CACHE_CONTROL,
            "CDN-Cache-Control": "public, s-maxage=3600",
        },
    )


@router.get("/details")
async def get_event_details(
    request: Request,
    event_id: int | None = None,
    slug: str | None = None,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    """Stored details of an event, with defaults for missing sections."""
    if not api_key_matches(request_api_key(request), settings):
        return unauthorized()

    if event_id is None and not slug:
        return JSONResponse(
            {"success": False, "error": "Either event_id or slug parameter is required"},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    gateway = EventGateway(session)
    try:
        event = await resolve_event(gateway, event_id, slug)
        details = await gateway.read_event_details(event.event_id)
    except EventNotFound:
        return JSONResponse(
            {"success": False, "error": "Event not found"},
            status_code=status.HTTP_404_NOT_FOUND,
        )
    except DeadlineError as e:
        return JSONResponse(
            {"success": False, "error": "Failed to fetch event details", "details": str(e)},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if details is None:
        return JSONResponse(
            {"success": False, "error": "Event details not found"},
            status_code=status.HTTP_404_NOT_FOUND,
        )

    data = {**details, "slug": event.slug, "incident_date": event.incident_date}
    return JSONResponse(jsonable_encoder({"success": True, "data": data}))


@router.get("/updates")
async def get_event_updates(
    request: Request,
    event_id: int | None = None,
    slug: str | None = None,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    """
    Updates of an event, newest first.

    Updates are not critical for rendering, so lookup failures return an
    empty list instead of an error.
    """
    if not api_key_matches(request_api_key(request), settings):
        return unauthorized()

    if event_id is None and not slug:
        return JSONResponse(
            {"success": False, "error": "Either event_id or slug parameter is required"},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    empty = {"success": True, "data": [], "count": 0}
    gateway = EventGateway(session)
    try:
        event = await resolve_event(gateway, event_id, slug)
        updates = await gateway.list_updates(event.event_id)
    except DeadlineError as e:
        logger.warning(f"[PUBLIC] Updates unavailable for event {event_id or slug}: {e}")
        return JSONResponse(empty)

    data = [EventUpdateRead.model_validate(update).model_dump() for update in updates]
    return JSONResponse(jsonable_encoder({"success": True, "data": data, "count": len(data)}))


@router.get("/title")
async def get_page_title(
    url: str | None = None,
    scraper: ArticleScraper = Depends(get_scraper),
):
    """Cleaned title of a source page."""
    if not url:
        return JSONResponse({"error": "URL parameter is required"}, status_code=status.HTTP_400_BAD_REQUEST)

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return JSONResponse({"error": "Invalid URL format"}, status_code=status.HTTP_400_BAD_REQUEST)

    title = await scraper.fetch_title(url)
    return JSONResponse({"title": title}, headers={"Cache-Control": TITLE_CACHE_CONTROL})

"""
Persistence Gateway

Record lookup/insert/update for events, their details and their updates.
Writes are flushed, not committed: callers group them and call commit() so a
pipeline run lands in a single transaction.
"""

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import func, select
from sqlmodel.ext.asyncio.session import AsyncSession

from deadline.exceptions import EventNotFound, PersistenceError
from deadline.models import Event, EventDetails, EventUpdate, EventUpdateCreate, utcnow
from deadline.services.extraction_schemas import EMPTY_ACCUSED, EMPTY_OVERVIEW, EMPTY_VICTIMS


DETAIL_FIELDS = ("headline", "location", "details", "accused", "victims", "timeline", "sources", "images")


# =============================================================================
# LEGACY DECODING
# =============================================================================


def _maybe_json(value: Any) -> Any:
    """Decode a JSON-encoded string column; other values pass through."""
    if isinstance(value, str):
        stripped = value.strip()
        if stripped[:1] in ("{", "["):
            try:
                return json.loads(stripped)
            except json.JSONDecodeError:
                return value
    return value


def _party_from_name(name: Any) -> dict:
    return {"name": str(name), "summary": "", "details": []}


def decode_details_field(value: Any) -> dict:
    value = _maybe_json(value)
    if isinstance(value, dict):
        return {**EMPTY_OVERVIEW, **value}
    if isinstance(value, str) and value:
        # Older rows stored the narrative as plain text
        return {"overview": value, "keyPoints": []}
    return dict(EMPTY_OVERVIEW, keyPoints=[])


def _decode_parties(value: Any, empty: dict, list_key: str) -> dict:
    value = _maybe_json(value)
    if isinstance(value, dict):
        decoded = {key: list(default) for key, default in empty.items()}
        decoded.update(value)
        return decoded
    decoded = {key: [] for key in empty}
    if isinstance(value, list):
        # Older rows stored a flat list of names
        decoded[list_key] = [
            item if isinstance(item, dict) else _party_from_name(item) for item in value if item
        ]
    return decoded


def decode_accused(value: Any) -> dict:
    return _decode_parties(value, EMPTY_ACCUSED, "individuals")


def decode_victims(value: Any) -> dict:
    return _decode_parties(value, EMPTY_VICTIMS, "individuals")


def decode_timeline(value: Any) -> list:
    value = _maybe_json(value)
    if not isinstance(value, list):
        return []
    return [
        item if isinstance(item, dict) else {"date": "", "context": str(item), "events": []}
        for item in value
        if item
    ]


def decode_url_list(value: Any) -> list[str]:
    value = _maybe_json(value)
    if not isinstance(value, list):
        return []
    return [url for url in value if isinstance(url, str) and url]


def details_to_dict(row: EventDetails) -> dict[str, Any]:
    """Structured view of a details row, with legacy encodings decoded."""
    return {
        "event_id": row.event_id,
        "headline": row.headline or "",
        "location": row.location or "",
        "details": decode_details_field(row.details),
        "accused": decode_accused(row.accused),
        "victims": decode_victims(row.victims),
        "timeline": decode_timeline(row.timeline),
        "sources": decode_url_list(row.sources),
        "images": decode_url_list(row.images),
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    }


def merge_unique(existing: list[str], new: list[str]) -> list[str]:
    """Append new URLs not already present (exact match), keeping order."""
    merged = list(existing)
    seen = set(existing)
    for url in new:
        if url and url not in seen:
            merged.append(url)
            seen.add(url)
    return merged


# =============================================================================
# GATEWAY
# =============================================================================


class EventGateway:
    """Persistence operations used by the pipeline and the API."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def _translate_errors(self, action: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(f"[DB] Failed to {action}: {e}")
            raise PersistenceError(f"Failed to {action}: {e}") from e

    async def get_event(self, event_id: int) -> Event:
        """Fetch an event by id. Raises EventNotFound."""
        async with self._translate_errors(f"fetch event {event_id}"):
            event = await self.session.get(Event, event_id)
        if event is None:
            raise EventNotFound(f"Event {event_id} not found")
        return event

    async def get_event_by_slug(self, slug: str) -> Event:
        """Fetch an event by slug. Raises EventNotFound."""
        async with self._translate_errors(f"fetch event '{slug}'"):
            result = await self.session.exec(select(Event).where(Event.slug == slug))
            event = result.first()
        if event is None:
            raise EventNotFound(f"Event '{slug}' not found")
        return event

    async def get_event_details(self, event_id: int) -> EventDetails | None:
        """Fetch the raw details row, if any."""
        async with self._translate_errors(f"fetch details for event {event_id}"):
            return await self.session.get(EventDetails, event_id)

    async def read_event_details(self, event_id: int) -> dict[str, Any] | None:
        """Fetch details decoded into the structured schema."""
        row = await self.get_event_details(event_id)
        return details_to_dict(row) if row else None

    async def upsert_event_details(self, event_id: int, data: dict[str, Any]) -> EventDetails:
        """Create or overwrite the details row of an event."""
        async with self._translate_errors(f"save details for event {event_id}"):
            row = await self.session.get(EventDetails, event_id)
            now = utcnow()

            if row is None:
                logger.info(f"[DB] Inserting details for event {event_id}")
                row = EventDetails(event_id=event_id, created_at=now)
            else:
                logger.info(f"[DB] Updating details for event {event_id}")

            for field in DETAIL_FIELDS:
                if field in data:
                    setattr(row, field, data[field])
            row.updated_at = now

            self.session.add(row)
            await self.session.flush()
        return row

    async def insert_updates(self, records: list[EventUpdateCreate]) -> list[EventUpdate]:
        """Append update rows."""
        async with self._translate_errors("insert updates"):
            rows = [EventUpdate.model_validate(record) for record in records]
            self.session.add_all(rows)
            await self.session.flush()
        return rows

    async def update_event(
        self,
        event_id: int,
        last_updated: datetime | None = None,
        status: str | None = None,
    ) -> Event:
        """
        Update an event's frontier and/or status.

        The frontier only moves forward: an earlier `last_updated` is ignored.
        """
        event = await self.get_event(event_id)
        async with self._translate_errors(f"update event {event_id}"):
            if last_updated is not None and (event.last_updated is None or last_updated > event.last_updated):
                event.last_updated = last_updated
            if status is not None:
                event.status = status
            self.session.add(event)
            await self.session.flush()
        return event

    async def merge_sources(self, event_id: int, urls: list[str]) -> list[str] | None:
        """
        Merge URLs into the stored source list, deduplicating by exact URL.

        Returns the merged list, or None when the event has no details row yet.
        """
        row = await self.get_event_details(event_id)
        if row is None:
            logger.info(f"[DB] No details row for event {event_id}, sources not merged")
            return None

        async with self._translate_errors(f"merge sources for event {event_id}"):
            merged = merge_unique(decode_url_list(row.sources), urls)
            row.sources = merged
            row.updated_at = utcnow()
            self.session.add(row)
            await self.session.flush()
        return merged

    async def list_events(self, limit: int, offset: int) -> tuple[list[Event], int]:
        """Page through events, newest incident first."""
        async with self._translate_errors("list events"):
            total = (await self.session.exec(select(func.count(Event.event_id)))).one()
            query = (
                select(Event)
                .order_by(Event.incident_date.desc().nulls_last(), Event.last_updated.desc())
                .offset(offset)
                .limit(limit)
            )
            events = (await self.session.exec(query)).all()
        return list(events), total

    async def list_updates(self, event_id: int) -> list[EventUpdate]:
        """Updates of an event, newest first."""
        async with self._translate_errors(f"list updates for event {event_id}"):
            query = (
                select(EventUpdate)
                .where(EventUpdate.event_id == event_id)
                .order_by(EventUpdate.update_date.desc())
            )
            return list((await self.session.exec(query)).all())

    async def list_trackable_event_ids(self) -> list[int]:
        """Ids of events that have a search query."""
        async with self._translate_errors("list trackable events"):
            query = select(Event.event_id).where(Event.query.is_not(None)).order_by(Event.event_id)
            return list((await self.session.exec(query)).all())

    async def commit(self) -> None:
        async with self._translate_errors("commit"):
            await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

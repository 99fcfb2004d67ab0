"""Tests for the persistence gateway."""

import json
from datetime import datetime

import pytest
from sqlmodel import select

from conftest import make_event
from deadline.exceptions import EventNotFound
from deadline.models import Event, EventDetails, EventUpdate, EventUpdateCreate
from deadline.services.persistence import EventGateway, merge_unique


@pytest.mark.asyncio
async def test_get_event_missing_raises(async_session):
    with pytest.raises(EventNotFound):
        await EventGateway(async_session).get_event(99)

    with pytest.raises(EventNotFound):
        await EventGateway(async_session).get_event_by_slug("nope")


@pytest.mark.asyncio
async def test_get_event_by_slug(async_session, event):
    found = await EventGateway(async_session).get_event_by_slug("event-1")
    assert found.event_id == event.event_id


@pytest.mark.asyncio
async def test_upsert_event_details_inserts_then_updates(async_session, event):
    gateway = EventGateway(async_session)

    await gateway.upsert_event_details(1, {"headline": "First", "sources": ["https://a.com"]})
    await gateway.commit()
    first = await gateway.get_event_details(1)
    created_at = first.created_at

    await gateway.upsert_event_details(1, {"headline": "Second", "location": "Dhaka"})
    await gateway.commit()
    second = await gateway.get_event_details(1)

    assert second.headline == "Second"
    assert second.location == "Dhaka"
    assert second.sources == ["https://a.com"]
    assert second.created_at == created_at
    assert second.updated_at >= created_at


@pytest.mark.asyncio
async def test_update_event_never_moves_frontier_backwards(async_session, event):
    gateway = EventGateway(async_session)

    await gateway.update_event(1, last_updated=datetime(2023, 6, 1), status="Justice")
    await gateway.commit()
    refreshed = await gateway.get_event(1)

    assert refreshed.last_updated == datetime(2024, 1, 1)
    assert refreshed.status == "Justice"

    await gateway.update_event(1, last_updated=datetime(2024, 3, 1))
    assert (await gateway.get_event(1)).last_updated == datetime(2024, 3, 1)


@pytest.mark.asyncio
async def test_merge_sources_deduplicates_exact_urls(async_session, event):
    gateway = EventGateway(async_session)
    await gateway.upsert_event_details(1, {"sources": ["https://a.com/1", "https://b.com/2"]})

    merged = await gateway.merge_sources(1, ["https://b.com/2", "https://c.com/3", "https://a.com/1/"])

    assert merged == ["https://a.com/1", "https://b.com/2", "https://c.com/3", "https://a.com/1/"]


@pytest.mark.asyncio
async def test_merge_sources_without_details_row(async_session, event):
    assert await EventGateway(async_session).merge_sources(1, ["https://a.com"]) is None


@pytest.mark.asyncio
async def test_insert_and_list_updates_newest_first(async_session, event):
    gateway = EventGateway(async_session)
    await gateway.insert_updates([
        EventUpdateCreate(event_id=1, title="Arrest", description="Two arrested.", update_date=datetime(2024, 1, 5)),
        EventUpdateCreate(event_id=1, title="Verdict", description="Court rules.", update_date=datetime(2024, 2, 9)),
    ])
    await gateway.commit()

    updates = await gateway.list_updates(1)

    assert [u.title for u in updates] == ["Verdict", "Arrest"]
    assert all(u.update_id is not None for u in updates)


@pytest.mark.asyncio
async def test_naive_utc_datetimes_bind_in_queries(async_session, event):
    """Frontier and update dates are naive UTC, both when written and when used as filters."""
    gateway = EventGateway(async_session)
    await gateway.insert_updates([
        EventUpdateCreate(event_id=1, title="Arrest", description="Two arrested.", update_date=datetime(2024, 1, 5)),
    ])
    await gateway.update_event(1, last_updated=datetime(2024, 1, 5))
    await gateway.commit()

    query = select(EventUpdate).where(EventUpdate.update_date > datetime(2024, 1, 1))
    rows = (await async_session.exec(query)).all()
    stored = (await async_session.exec(select(Event.last_updated).where(Event.event_id == 1))).one()

    assert [row.title for row in rows] == ["Arrest"]
    assert stored == datetime(2024, 1, 5)
    assert stored.tzinfo is None


@pytest.mark.asyncio
async def test_list_events_ordering_and_total(async_session):
    async_session.add_all([
        make_event(1, incident_date=datetime(2023, 5, 1), last_updated=datetime(2024, 1, 1)),
        make_event(2, incident_date=None, last_updated=datetime(2024, 6, 1)),
        make_event(3, incident_date=datetime(2024, 2, 1)),
        make_event(4, incident_date=datetime(2023, 5, 1), last_updated=datetime(2024, 3, 1)),
    ])
    await async_session.commit()
    gateway = EventGateway(async_session)

    events, total = await gateway.list_events(limit=3, offset=0)
    rest, _ = await gateway.list_events(limit=3, offset=3)

    assert total == 4
    assert [e.event_id for e in events] == [3, 4, 1]
    assert [e.event_id for e in rest] == [2]


@pytest.mark.asyncio
async def test_list_trackable_event_ids(async_session):
    async_session.add_all([make_event(1), make_event(2, query=None)])
    await async_session.commit()

    assert await EventGateway(async_session).list_trackable_event_ids() == [1]


class TestLegacyDecoding:
    @pytest.mark.asyncio
    async def test_string_encoded_and_flat_columns_are_decoded(self, async_session, event):
        async_session.add(
            EventDetails(
                event_id=1,
                headline=None,
                details="A plain narrative from the old schema.",
                accused=json.dumps(["Rahim Uddin", "Karim Ltd"]),
                victims=json.dumps({"individuals": [{"name": "Jane", "summary": "", "details": []}]}),
                timeline=json.dumps(["March 2023: fire broke out"]),
                sources=json.dumps(["https://a.com"]),
                images=None,
            )
        )
        await async_session.commit()

        details = await EventGateway(async_session).read_event_details(1)

        assert details["headline"] == ""
        assert details["details"] == {"overview": "A plain narrative from the old schema.", "keyPoints": []}
        assert [p["name"] for p in details["accused"]["individuals"]] == ["Rahim Uddin", "Karim Ltd"]
        assert details["accused"]["organizations"] == []
        assert details["victims"]["individuals"][0]["name"] == "Jane"
        assert details["victims"]["groups"] == []
        assert details["timeline"] == [{"date": "", "context": "March 2023: fire broke out", "events": []}]
        assert details["sources"] == ["https://a.com"]
        assert details["images"] == []

    @pytest.mark.asyncio
    async def test_structured_columns_pass_through(self, async_session, event):
        accused = {"individuals": [], "organizations": [{"name": "Acme", "summary": "s", "details": []}]}
        async_session.add(EventDetails(event_id=1, accused=accused, details={"overview": "o", "keyPoints": []}))
        await async_session.commit()

        details = await EventGateway(async_session).read_event_details(1)

        assert details["accused"] == accused
        assert details["details"] == {"overview": "o", "keyPoints": []}

    @pytest.mark.asyncio
    async def test_missing_row(self, async_session, event):
        assert await EventGateway(async_session).read_event_details(1) is None


def test_merge_unique_keeps_order():
    assert merge_unique(["a", "b"], ["b", "c", "", "a", "d"]) == ["a", "b", "c", "d"]

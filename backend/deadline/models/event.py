"""Event model - one documented incident tracked by the archive."""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how SQLite stores datetimes."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class EventStatus(str, Enum):
    """Derived case status, recomputed by the update detector.

    - justice: sources clearly state that justice has been delivered
    - injustice: anything short of that (the default)
    """

    justice = "Justice"
    injustice = "Injustice"


class EventBase(SQLModel):
    """Base model for events."""

    slug: str = Field(unique=True, index=True, max_length=256)
    title: str | None = Field(default=None, max_length=512)

    # Natural-language query that drives web searches for this event
    query: str | None = Field(default=None, max_length=512)

    summary: str | None = Field(default=None)
    image_url: str | None = Field(default=None, max_length=2048)
    tags: list[str] | None = Field(default=None, sa_column=Column(JSON))

    status: str = Field(default=EventStatus.injustice.value, max_length=20, index=True)
    incident_date: datetime | None = Field(default=None, index=True)

    # Frontier: content published up to this point has been incorporated
    last_updated: datetime | None = Field(default=None)


class Event(EventBase, table=True):
    """Event record."""

    __tablename__ = "events"

    event_id: int | None = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow)


class EventRead(EventBase):
    """Schema for reading an event."""

    event_id: int
    created_at: datetime

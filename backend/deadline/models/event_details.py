"""Event details model - the structured result of the extraction pipeline."""

from datetime import datetime

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel

from deadline.models.event import utcnow


class EventDetailsBase(SQLModel):
    """Base model for event details.

    The structured sub-objects are stored as JSON. Older rows may hold them as
    JSON-encoded strings; the persistence gateway decodes those on read.
    """

    headline: str | None = Field(default=None, max_length=1024)
    location: str | None = Field(default=None)

    # {"overview": str, "keyPoints": [{"label": str, "value": str}]}
    details: dict | None = Field(default=None, sa_column=Column(JSON))

    # {"individuals": [party], "organizations": [party]}
    accused: dict | None = Field(default=None, sa_column=Column(JSON))

    # {"individuals": [party], "groups": [party]}
    victims: dict | None = Field(default=None, sa_column=Column(JSON))

    # [{"date": str, "context": str, "events": [...]}]
    timeline: list | None = Field(default=None, sa_column=Column(JSON))

    sources: list[str] | None = Field(default=None, sa_column=Column(JSON))
    images: list[str] | None = Field(default=None, sa_column=Column(JSON))


class EventDetails(EventDetailsBase, table=True):
    """Event details record (one per event)."""

    __tablename__ = "event_details"

    event_id: int = Field(foreign_key="events.event_id", primary_key=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

"""Event update model - append-only dated developments of an event."""

from datetime import datetime

from sqlmodel import Field, SQLModel

from deadline.models.event import utcnow


class EventUpdateBase(SQLModel):
    """Base model for event updates."""

    title: str = Field(max_length=512)
    description: str = Field()
    update_date: datetime = Field(index=True)


class EventUpdate(EventUpdateBase, table=True):
    """Update record. Inserted by the update detector, never mutated."""

    __tablename__ = "event_updates"

    update_id: int | None = Field(default=None, primary_key=True)
    event_id: int = Field(foreign_key="events.event_id", index=True)
    created_at: datetime = Field(default_factory=utcnow)


class EventUpdateCreate(EventUpdateBase):
    """Schema for creating an update."""

    event_id: int


class EventUpdateRead(EventUpdateBase):
    """Schema for reading an update."""

    update_id: int
    event_id: int
    created_at: datetime

"""SQLModel database models."""

from deadline.models.event import (
    Event,
    EventBase,
    EventRead,
    EventStatus,
    utcnow,
)
from deadline.models.event_details import (
    EventDetails,
    EventDetailsBase,
)
from deadline.models.event_update import (
    EventUpdate,
    EventUpdateBase,
    EventUpdateCreate,
    EventUpdateRead,
)

__all__ = [
    # Event
    "Event",
    "EventBase",
    "EventRead",
    "EventStatus",
    "utcnow",
    # Event details
    "EventDetails",
    "EventDetailsBase",
    # Event update
    "EventUpdate",
    "EventUpdateBase",
    "EventUpdateCreate",
    "EventUpdateRead",
]

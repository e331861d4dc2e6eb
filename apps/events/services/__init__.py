"""Services for calendar events."""

from ..exceptions import EventServiceError, EventNotFoundError, InvalidEventRangeError
from .event_management import (
    get_event,
    get_events_between,
    create_event,
    update_event,
    delete_event,
)

__all__ = [
    # Exceptions
    'EventServiceError',
    'EventNotFoundError',
    'InvalidEventRangeError',
    # Services
    'get_event',
    'get_events_between',
    'create_event',
    'update_event',
    'delete_event',
]

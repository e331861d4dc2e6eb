"""Domain exceptions for the events app."""


class EventServiceError(Exception):
    """Base exception for calendar event service errors."""
    pass


class EventNotFoundError(EventServiceError):
    """Raised when an event does not exist or belongs to another user."""
    pass


class InvalidEventRangeError(EventServiceError):
    """Raised when a range query ends before it starts."""
    pass

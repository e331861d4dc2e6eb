"""
Calendar event service.

Events live only in the local database; they are not queued for the remote
store.
"""

import logging
from datetime import date
from typing import Optional

from django.db import transaction
from django.db.models import F

from apps.accounts.models import User
from apps.events.models import CalendarEvent, ReminderOffset
from apps.jalali.conversion import date_from_jalali, jalali_from_date
from apps.jalali.exceptions import InvalidDateError
from apps.jalali.formatting import format_persian_date, holiday_name, parse_persian_date

from ..exceptions import EventNotFoundError, InvalidEventRangeError


logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    'title',
    'description',
    'event_date',
    'event_date_jalali',
    'event_time',
    'reminder_minutes',
}


def _resolve_date(event_date_jalali, event_date):
    """Return (gregorian, jalali) for whichever form was given."""
    if event_date_jalali:
        jalali = format_persian_date(*parse_persian_date(event_date_jalali))
        return date_from_jalali(jalali), jalali
    if event_date:
        return event_date, jalali_from_date(event_date)
    raise InvalidDateError('An event date is required')


def _stamp_date(event, gregorian, jalali):
    event.event_date = gregorian
    event.event_date_jalali = jalali
    event.is_holiday = holiday_name(*parse_persian_date(jalali)) is not None


def get_event(*, event_id, user: User) -> CalendarEvent:
    """
    Get one of the user's events.

    Raises:
        EventNotFoundError: Unknown id, or the event belongs to another user.
    """
    try:
        return CalendarEvent.objects.get(id=event_id, owner=user)
    except CalendarEvent.DoesNotExist:
        raise EventNotFoundError(f"Event {event_id} not found")


def get_events_between(*, user: User, start: date, end: date):
    """
    Events whose date falls in ``start..end`` (both inclusive).

    Ordered by date, then time with untimed events first.

    Raises:
        InvalidEventRangeError: If ``end`` is before ``start``.
    """
    if end < start:
        raise InvalidEventRangeError(f"Range end {end} is before its start {start}")
    return (
        CalendarEvent.objects
        .filter(owner=user, event_date__gte=start, event_date__lte=end)
        .order_by('event_date', F('event_time').asc(nulls_first=True), 'created_at')
    )


@transaction.atomic
def create_event(
    *,
    owner: User,
    title: str,
    event_date_jalali: Optional[str] = None,
    event_date: Optional[date] = None,
    description: str = '',
    event_time=None,
    reminder_minutes: int = ReminderOffset.HALF_HOUR
) -> CalendarEvent:
    """
    Create an event on a Jalali (``YYYY/MM/DD``) or Gregorian date.

    Raises:
        InvalidDateError: If neither date is given or the Jalali date does not exist.
    """
    gregorian, jalali = _resolve_date(event_date_jalali, event_date)
    event = CalendarEvent(
        owner=owner,
        title=title,
        description=description,
        event_time=event_time,
        reminder_minutes=reminder_minutes,
    )
    _stamp_date(event, gregorian, jalali)
    event.save()

    logger.info("Event '%s' created for %s on %s", title, owner, jalali)
    return event


@transaction.atomic
def update_event(*, event_id, user: User, **changes) -> CalendarEvent:
    """
    Apply ``changes`` to an event.

    A new date may be given in either form; the Jalali form wins when both
    are present. Unknown fields are ignored.
    """
    event = get_event(event_id=event_id, user=user)

    if changes.get('event_date_jalali') or changes.get('event_date'):
        gregorian, jalali = _resolve_date(changes.get('event_date_jalali'), changes.get('event_date'))
        _stamp_date(event, gregorian, jalali)

    for field in EDITABLE_FIELDS - {'event_date', 'event_date_jalali'}:
        if field in changes:
            setattr(event, field, changes[field])
    event.save()

    logger.info("Event %s updated", event.id)
    return event


@transaction.atomic
def delete_event(*, event_id, user: User) -> None:
    """Delete an event permanently."""
    event = get_event(event_id=event_id, user=user)
    event.delete()
    logger.info("Event %s deleted by %s", event_id, user)

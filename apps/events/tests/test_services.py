from datetime import date, time

import pytest

from apps.events.models import CalendarEvent
from apps.events.services import (
    EventNotFoundError,
    InvalidEventRangeError,
    create_event,
    delete_event,
    get_event,
    get_events_between,
    update_event,
)
from apps.jalali.exceptions import InvalidDateError
from apps.sync.models import SyncOperation


@pytest.mark.django_db
class TestCreateEvent:

    def test_jalali_date_gets_gregorian_twin(self, event):
        assert event.event_date == date(2024, 8, 1)
        assert event.event_date_jalali == '1403/05/11'
        assert event.reminder_minutes == 30
        assert event.is_holiday is False

    def test_gregorian_date_gets_jalali_twin(self, user):
        event = create_event(owner=user, title='تولد', event_date=date(2024, 3, 20))
        assert event.event_date_jalali == '1403/01/01'

    def test_persian_digits_are_normalized(self, user):
        event = create_event(owner=user, title='سفر', event_date_jalali='۱۴۰۳/۰۵/۱۱')
        assert event.event_date_jalali == '1403/05/11'

    def test_holiday_is_derived_from_date(self, user):
        event = create_event(owner=user, title='سیزده‌به‌در', event_date_jalali='1403/01/13')
        assert event.is_holiday is True

    def test_missing_date_rejected(self, user):
        with pytest.raises(InvalidDateError):
            create_event(owner=user, title='بی‌تاریخ')

    def test_nonexistent_jalali_date_rejected(self, user):
        with pytest.raises(InvalidDateError):
            create_event(owner=user, title='اشتباه', event_date_jalali='1403/07/31')

    def test_events_are_not_queued_for_sync(self, event):
        assert SyncOperation.objects.count() == 0


@pytest.mark.django_db
class TestUpdateAndDelete:

    def test_update_fields(self, event, user):
        updated = update_event(event_id=event.id, user=user, title='جلسه دوم', reminder_minutes=60)

        assert updated.title == 'جلسه دوم'
        assert updated.reminder_minutes == 60
        assert updated.event_time == time(10, 30)

    def test_moving_date_restamps_holiday(self, event, user):
        updated = update_event(event_id=event.id, user=user, event_date=date(2024, 3, 20))

        assert updated.event_date_jalali == '1403/01/01'
        assert updated.is_holiday is True

    def test_clear_time(self, event, user):
        assert update_event(event_id=event.id, user=user, event_time=None).event_time is None

    def test_other_users_event_is_hidden(self, event, other_user):
        with pytest.raises(EventNotFoundError):
            get_event(event_id=event.id, user=other_user)
        with pytest.raises(EventNotFoundError):
            update_event(event_id=event.id, user=other_user, title='x')
        with pytest.raises(EventNotFoundError):
            delete_event(event_id=event.id, user=other_user)

    def test_delete(self, event, user):
        delete_event(event_id=event.id, user=user)
        assert not CalendarEvent.objects.filter(id=event.id).exists()


@pytest.mark.django_db
class TestEventsBetween:

    def test_range_is_inclusive_and_ordered(self, user, other_user):
        late = create_event(owner=user, title='ساعت ۹', event_date_jalali='1403/05/02', event_time=time(9))
        untimed = create_event(owner=user, title='تمام روز', event_date_jalali='1403/05/02')
        first = create_event(owner=user, title='اول ماه', event_date_jalali='1403/05/01')
        last = create_event(owner=user, title='آخر ماه', event_date_jalali='1403/05/31')
        create_event(owner=user, title='ماه بعد', event_date_jalali='1403/06/01')
        create_event(owner=other_user, title='دیگری', event_date_jalali='1403/05/10')

        events = get_events_between(user=user, start=date(2024, 7, 22), end=date(2024, 8, 21))

        assert [e.id for e in events] == [first.id, untimed.id, late.id, last.id]

    def test_reversed_range_rejected(self, user):
        with pytest.raises(InvalidEventRangeError):
            get_events_between(user=user, start=date(2024, 8, 2), end=date(2024, 8, 1))

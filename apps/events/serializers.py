from rest_framework import serializers

from apps.jalali.conversion import date_from_jalali
from apps.jalali.exceptions import InvalidDateError
from apps.jalali.formatting import format_persian_date, parse_persian_date
from .models import CalendarEvent, ReminderOffset


def _validate_jalali(value):
    try:
        return format_persian_date(*parse_persian_date(value))
    except InvalidDateError as e:
        raise serializers.ValidationError(str(e))


class EventInputSerializer(serializers.Serializer):
    """
    Validate event create/update payloads.

    Either ``event_date_jalali`` (YYYY/MM/DD) or ``event_date`` (Gregorian)
    is required on create.
    """

    title = serializers.CharField(max_length=200)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    event_date_jalali = serializers.CharField(max_length=10, required=False)
    event_date = serializers.DateField(required=False)
    event_time = serializers.TimeField(required=False, allow_null=True, default=None)
    reminder_minutes = serializers.ChoiceField(
        choices=ReminderOffset.choices, required=False, default=ReminderOffset.HALF_HOUR
    )

    def validate_event_date_jalali(self, value):
        return _validate_jalali(value)

    def validate(self, attrs):
        if not self.partial and not attrs.get('event_date_jalali') and not attrs.get('event_date'):
            raise serializers.ValidationError({
                'event_date_jalali': 'Provide event_date_jalali or event_date.'
            })
        return attrs


class EventRangeQuerySerializer(serializers.Serializer):
    """``start``/``end`` as Jalali (YYYY/MM/DD) or Gregorian (YYYY-MM-DD) dates."""

    start = serializers.CharField()
    end = serializers.CharField()

    def _to_date(self, value):
        if '/' in value:
            try:
                return date_from_jalali(value)
            except InvalidDateError as e:
                raise serializers.ValidationError(str(e))
        return serializers.DateField().to_internal_value(value)

    def validate_start(self, value):
        return self._to_date(value)

    def validate_end(self, value):
        return self._to_date(value)

    def validate(self, attrs):
        if attrs['end'] < attrs['start']:
            raise serializers.ValidationError({'end': 'end must not be before start.'})
        return attrs


class EventSerializer(serializers.ModelSerializer):

    class Meta:
        model = CalendarEvent
        fields = [
            'id',
            'title',
            'description',
            'event_date',
            'event_date_jalali',
            'event_time',
            'reminder_minutes',
            'is_holiday',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

from django.conf import settings
from django.db import models
import uuid


class ReminderOffset(models.IntegerChoices):
    QUARTER_HOUR = 15, '15 minutes before'
    HALF_HOUR = 30, '30 minutes before'
    HOUR = 60, '1 hour before'
    DAY = 1440, '1 day before'


class CalendarEvent(models.Model):
    """
    A personal calendar entry.

    ``event_date_jalali`` is what the user picked; ``event_date`` is its
    Gregorian twin and is what range queries filter on. ``is_holiday`` is
    derived from the national holiday table whenever the date changes.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='events'
    )
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    event_date = models.DateField()
    event_date_jalali = models.CharField(max_length=10)
    event_time = models.TimeField(null=True, blank=True)
    reminder_minutes = models.PositiveIntegerField(
        choices=ReminderOffset.choices,
        default=ReminderOffset.HALF_HOUR
    )
    is_holiday = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'events'
        ordering = ['event_date', 'event_time']
        indexes = [
            models.Index(fields=['owner', 'event_date'], name='events_owner_i_3e8b1d_idx'),
        ]

    def __str__(self):
        return f"{self.title} ({self.event_date_jalali})"

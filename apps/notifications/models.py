from django.db import models
import uuid


class ReminderKind(models.TextChoices):
    UPCOMING = 'upcoming', 'Upcoming'
    DUE = 'due', 'Due today'


class ReminderLog(models.Model):
    """
    One delivered reminder.

    Ids refer to remote rows, so there are no foreign keys here. The unique
    constraint is what makes a second scan on the same day a no-op.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    payment_id = models.UUIDField()
    user_id = models.UUIDField(db_index=True)
    kind = models.CharField(max_length=10, choices=ReminderKind.choices)
    sent_on = models.DateField()
    delivered = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'reminder_logs'
        constraints = [
            models.UniqueConstraint(
                fields=['payment_id', 'kind', 'sent_on'],
                name='unique_reminder_per_day'
            )
        ]
        ordering = ['-sent_on', '-created_at']

    def __str__(self):
        return f"{self.kind} reminder for {self.payment_id} on {self.sent_on}"

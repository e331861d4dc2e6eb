from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
import math
import uuid

from apps.jalali.conversion import date_from_jalali, jalali_from_date
from .exceptions import InvalidLifecycleTransitionError


# Upper bound on payments per installment (100 years of monthly payments)
MAX_INSTALLMENT_COUNT = 1200


class Recurrence(models.TextChoices):
    DAILY = 'daily', 'Daily'
    WEEKLY = 'weekly', 'Weekly'
    MONTHLY = 'monthly', 'Monthly'
    YEARLY = 'yearly', 'Yearly'
    NEVER = 'never', 'Never'


class Lifecycle(models.TextChoices):
    ACTIVE = 'active', 'Active'
    SOFT_DELETED = 'soft_deleted', 'Soft deleted'
    PURGED = 'purged', 'Purged'


class LifecycleModel(models.Model):
    """
    Explicit three-state lifecycle shared by installments and payments.

    ``active -> soft_deleted -> purged``, with ``restore`` taking a
    soft-deleted row back to active. ``deleted_at`` mirrors the state for the
    remote representation and must only change through these methods.
    """

    TRANSITIONS = {
        'soft_delete': (Lifecycle.ACTIVE, Lifecycle.SOFT_DELETED),
        'restore': (Lifecycle.SOFT_DELETED, Lifecycle.ACTIVE),
        'purge': (Lifecycle.SOFT_DELETED, Lifecycle.PURGED),
    }

    lifecycle = models.CharField(
        max_length=20,
        choices=Lifecycle.choices,
        default=Lifecycle.ACTIVE,
    )
    deleted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        abstract = True

    @property
    def is_active(self):
        return self.lifecycle == Lifecycle.ACTIVE

    @property
    def is_soft_deleted(self):
        return self.lifecycle == Lifecycle.SOFT_DELETED

    def _transition(self, name):
        source, target = self.TRANSITIONS[name]
        if self.lifecycle != source:
            raise InvalidLifecycleTransitionError(
                f"Cannot {name.replace('_', ' ')} {self._meta.verbose_name} "
                f"{self.pk} in state '{self.lifecycle}'"
            )
        self.lifecycle = target

    def soft_delete(self, at=None):
        """Move to the trash, stamping ``deleted_at``."""
        self._transition('soft_delete')
        self.deleted_at = at or timezone.now()
        self.save(update_fields=['lifecycle', 'deleted_at'])

    def restore(self):
        """Bring a soft-deleted row back."""
        self._transition('restore')
        self.deleted_at = None
        self.save(update_fields=['lifecycle', 'deleted_at'])

    def purge(self):
        """Mark for permanent removal. The row stays as a tombstone until confirmed."""
        self._transition('purge')
        self.save(update_fields=['lifecycle'])


class InstallmentQuerySet(models.QuerySet):

    def visible(self):
        """Everything except purged tombstones."""
        return self.exclude(lifecycle=Lifecycle.PURGED)

    def active(self):
        return self.filter(lifecycle=Lifecycle.ACTIVE)

    def trashed(self):
        return self.filter(lifecycle=Lifecycle.SOFT_DELETED)

    def for_user(self, user):
        return self.filter(owner=user)


class Installment(LifecycleModel):
    """A debt or payment plan split into scheduled payments."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='installments'
    )

    creditor_name = models.CharField(max_length=200)
    item_description = models.CharField(max_length=500, blank=True)

    # Amounts are whole currency units (toman)
    total_amount = models.PositiveBigIntegerField()
    installment_amount = models.PositiveBigIntegerField(null=True, blank=True)

    # Schedule
    start_date = models.DateField()
    start_date_jalali = models.CharField(max_length=10)
    installment_count = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)]
    )
    recurrence = models.CharField(
        max_length=10,
        choices=Recurrence.choices,
        default=Recurrence.MONTHLY
    )
    payment_time = models.TimeField(null=True, blank=True)
    reminder_days = models.PositiveIntegerField(default=3)

    notes = models.TextField(blank=True)

    # Timestamps are copied verbatim from remote rows, so no auto_now
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    objects = InstallmentQuerySet.as_manager()

    class Meta:
        db_table = 'installments'
        indexes = [
            models.Index(fields=['owner', 'lifecycle'], name='installment_owner_i_6a1f2c_idx'),
            models.Index(fields=['owner', 'created_at'], name='installment_owner_i_b83d0e_idx'),
            models.Index(fields=['lifecycle', 'deleted_at'], name='installment_lifecyc_4c9a71_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.creditor_name} - {self.total_amount} ({self.installment_count} x {self.recurrence})"

    def save(self, *args, **kwargs):
        """Normalise the schedule fields before writing."""
        if self.recurrence == Recurrence.NEVER:
            self.installment_count = 1
        if self.installment_amount is None and self.installment_count:
            self.installment_amount = math.ceil(self.total_amount / self.installment_count)
        if self.start_date_jalali and not self.start_date:
            self.start_date = date_from_jalali(self.start_date_jalali)
        elif self.start_date and not self.start_date_jalali:
            self.start_date_jalali = jalali_from_date(self.start_date)
        super().save(*args, **kwargs)

    def touch(self):
        self.updated_at = timezone.now()
        self.save(update_fields=['updated_at'])

    def live_payments(self):
        """Payments that are not in the trash, ordered by due date."""
        return self.payments.filter(lifecycle=Lifecycle.ACTIVE).order_by('due_date')


class Payment(LifecycleModel):
    """One scheduled due event of an installment."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    installment = models.ForeignKey(
        Installment,
        on_delete=models.CASCADE,
        related_name='payments'
    )

    due_date = models.DateField()
    due_date_jalali = models.CharField(max_length=10)
    amount = models.PositiveBigIntegerField()

    is_paid = models.BooleanField(default=False)
    paid_date = models.DateField(null=True, blank=True)

    class Meta:
        db_table = 'installment_payments'
        indexes = [
            models.Index(fields=['installment', 'due_date'], name='installment_install_e0d5b8_idx'),
            models.Index(fields=['due_date', 'is_paid'], name='installment_due_dat_71f3aa_idx'),
        ]
        ordering = ['due_date']

    def __str__(self):
        state = 'paid' if self.is_paid else 'unpaid'
        return f"{self.due_date_jalali} - {self.amount} ({state})"

    def save(self, *args, **kwargs):
        if self.due_date and not self.due_date_jalali:
            self.due_date_jalali = jalali_from_date(self.due_date)
        elif self.due_date_jalali and not self.due_date:
            self.due_date = date_from_jalali(self.due_date_jalali)
        super().save(*args, **kwargs)

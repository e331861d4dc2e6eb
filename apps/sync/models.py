from django.db import models
import uuid


class OperationKind(models.TextChoices):
    CREATE = 'create', 'Create'
    UPDATE = 'update', 'Update'
    TOGGLE_PAYMENT = 'toggle_payment', 'Toggle payment'
    SOFT_DELETE = 'soft_delete', 'Soft delete'
    HARD_DELETE = 'hard_delete', 'Hard delete'
    RESTORE = 'restore', 'Restore'


class EntityType(models.TextChoices):
    INSTALLMENT = 'installment', 'Installment'
    PAYMENT = 'payment', 'Payment'


class OperationState(models.TextChoices):
    PENDING = 'pending', 'Pending'
    IN_FLIGHT = 'in_flight', 'In flight'
    FAILED_RETRYABLE = 'failed_retryable', 'Failed (will retry)'
    FAILED_PERMANENT = 'failed_permanent', 'Failed permanently'


class SyncOperation(models.Model):
    """
    A local mutation waiting to be applied to the remote store.

    The auto-increment primary key gives the FIFO order. ``entity_id`` is
    always the root installment id so operations on one installment (and
    its payments) are applied in submission order.
    """

    id = models.BigAutoField(primary_key=True)
    operation_id = models.UUIDField(unique=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='sync_operations'
    )

    kind = models.CharField(max_length=20, choices=OperationKind.choices)
    entity_type = models.CharField(
        max_length=20,
        choices=EntityType.choices,
        default=EntityType.INSTALLMENT
    )
    entity_id = models.UUIDField(db_index=True)
    target_id = models.UUIDField(null=True, blank=True)
    payload = models.JSONField(default=dict, blank=True)

    # Retry tracking
    state = models.CharField(
        max_length=20,
        choices=OperationState.choices,
        default=OperationState.PENDING
    )
    retries = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True)
    next_attempt_at = models.DateTimeField(null=True, blank=True)
    claimed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'sync_operations'
        indexes = [
            models.Index(fields=['owner', 'state'], name='sync_operat_owner_i_3e7c52_idx'),
            models.Index(fields=['state', 'next_attempt_at'], name='sync_operat_state_a90b14_idx'),
        ]
        ordering = ['id']

    def __str__(self):
        return f"#{self.pk} {self.kind} {self.entity_type} {self.entity_id} ({self.state})"


class CacheEntry(models.Model):
    """When the user's local snapshot was last refreshed from the remote store."""

    owner = models.OneToOneField(
        'accounts.User',
        on_delete=models.CASCADE,
        primary_key=True,
        related_name='cache_entry'
    )
    stamped_at = models.DateTimeField()

    class Meta:
        db_table = 'cache_entries'
        verbose_name_plural = 'cache entries'

    def __str__(self):
        return f"{self.owner} @ {self.stamped_at.isoformat()}"

    @property
    def timestamp(self):
        """Stamp as epoch milliseconds."""
        return int(self.stamped_at.timestamp() * 1000)

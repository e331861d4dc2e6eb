"""
Local cache and operation queue.

The local tables hold the authoritative snapshot the API reads from. A
``CacheEntry`` stamp tells whether that snapshot is fresh enough to skip a
remote pull. The ``SyncOperation`` table is the durable FIFO queue of local
mutations awaiting remote application.
"""

from dataclasses import dataclass
from datetime import timedelta
import logging

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from apps.installments.models import Installment, Lifecycle
from apps.installments.services.payloads import apply_payload, installment_payload
from apps.sync.models import CacheEntry, OperationState, SyncOperation

from ..exceptions import OperationNotFailedError, OperationNotFoundError


logger = logging.getLogger(__name__)


@dataclass
class CacheSnapshot:
    """Installment payloads (newest first) and the epoch-millis stamp of the last pull."""

    data: list
    timestamp: int


def cache_duration() -> timedelta:
    return timedelta(seconds=getattr(settings, 'INSTALLMENT_CACHE_SECONDS', 30))


# =============================================================================
# Cache
# =============================================================================

def local_snapshot(user) -> list:
    """All of the user's non-purged installments as payloads, newest first."""
    installments = (
        Installment.objects
        .for_user(user)
        .visible()
        .order_by('-created_at')
    )
    return [installment_payload(installment) for installment in installments]


def get_cache(user, now=None):
    """
    Return the cached snapshot while it is fresh.

    Returns:
        CacheSnapshot, or None when the snapshot was never stamped or is
        older than ``INSTALLMENT_CACHE_SECONDS``.
    """
    entry = CacheEntry.objects.filter(owner=user).first()
    if entry is None:
        return None
    now = now or timezone.now()
    if now - entry.stamped_at > cache_duration():
        return None
    return CacheSnapshot(data=local_snapshot(user), timestamp=entry.timestamp)


@transaction.atomic
def set_cache(user, data, now=None) -> CacheSnapshot:
    """
    Replace the user's local rows with ``data`` and stamp the cache.

    Rows missing from ``data`` are removed, except purged tombstones which
    wait for their hard delete to be confirmed. Payloads for a tombstoned id
    are ignored so a late remote copy cannot resurrect it.
    """
    rows = Installment.objects.for_user(user)
    tombstones = {str(pk) for pk in rows.filter(lifecycle=Lifecycle.PURGED).values_list('id', flat=True)}

    kept = []
    for payload in data:
        if str(payload['id']) in tombstones:
            continue
        kept.append(apply_payload(owner=user, payload=payload).id)

    removed, _ = rows.visible().exclude(id__in=kept).delete()
    if removed:
        logger.debug("Cache for %s dropped %d stale rows", user, removed)

    entry, _ = CacheEntry.objects.update_or_create(
        owner=user,
        defaults={'stamped_at': now or timezone.now()},
    )
    return CacheSnapshot(data=local_snapshot(user), timestamp=entry.timestamp)


def invalidate_cache(user) -> None:
    CacheEntry.objects.filter(owner=user).delete()


# =============================================================================
# Queue
# =============================================================================

@transaction.atomic
def add_to_queue(
    *,
    user,
    kind: str,
    entity_id,
    entity_type: str = 'installment',
    payload=None,
    target_id=None,
    operation_id=None
) -> SyncOperation:
    """
    Append an operation to the queue with ``retries=0``.

    An ``operation_id`` that is already queued is not added twice; the
    existing operation is returned instead.
    """
    if operation_id is not None:
        existing = SyncOperation.objects.filter(operation_id=operation_id).first()
        if existing is not None:
            logger.debug("Operation %s already queued", operation_id)
            return existing

    fields = {
        'owner': user,
        'kind': kind,
        'entity_type': entity_type,
        'entity_id': entity_id,
        'target_id': target_id,
        'payload': payload or {},
    }
    if operation_id is not None:
        fields['operation_id'] = operation_id
    operation = SyncOperation.objects.create(**fields)
    logger.debug("Queued %s", operation)
    return operation


def get_queue(user=None) -> list:
    """Queued operations in FIFO order, optionally for one user."""
    queryset = SyncOperation.objects.order_by('id')
    if user is not None:
        queryset = queryset.filter(owner=user)
    return list(queryset)


def get_operation(*, operation_id, user) -> SyncOperation:
    """
    Fetch one of ``user``'s queued operations.

    Raises:
        OperationNotFoundError: Unknown id, or the operation belongs to another user.
    """
    try:
        return SyncOperation.objects.get(operation_id=operation_id, owner=user)
    except SyncOperation.DoesNotExist:
        raise OperationNotFoundError(f"Operation {operation_id} not found")


def claim_timeout() -> timedelta:
    return timedelta(seconds=getattr(settings, 'SYNC_CLAIM_TIMEOUT_SECONDS', 300))


def is_claim_stale(operation: SyncOperation, now=None) -> bool:
    """True when an ``in_flight`` operation has no live drain holding it."""
    if operation.claimed_at is None:
        return True
    now = now or timezone.now()
    return now - operation.claimed_at > claim_timeout()


def claim(operation: SyncOperation, now=None) -> bool:
    """
    Move ``operation`` to ``in_flight`` for the calling drain.

    The state check and the write are a single UPDATE, so of two drains
    racing for the same operation exactly one wins.

    Returns:
        False when another drain holds a live claim, the operation is
        backing off or parked, or it was already completed.
    """
    now = now or timezone.now()
    claimable = (
        Q(state=OperationState.PENDING)
        | Q(state=OperationState.FAILED_RETRYABLE, next_attempt_at__isnull=True)
        | Q(state=OperationState.FAILED_RETRYABLE, next_attempt_at__lte=now)
        | Q(state=OperationState.IN_FLIGHT, claimed_at__isnull=True)
        | Q(state=OperationState.IN_FLIGHT, claimed_at__lt=now - claim_timeout())
    )
    updated = (
        SyncOperation.objects
        .filter(pk=operation.pk)
        .filter(claimable)
        .update(state=OperationState.IN_FLIGHT, claimed_at=now)
    )
    if not updated:
        logger.debug("Operation %s is held by another drain", operation.operation_id)
        return False
    operation.state = OperationState.IN_FLIGHT
    operation.claimed_at = now
    return True


def release(operation: SyncOperation) -> None:
    """Put an interrupted operation back to pending without touching its retries."""
    operation.state = OperationState.PENDING
    operation.claimed_at = None
    operation.save(update_fields=['state', 'claimed_at'])


def complete(operations) -> None:
    """Remove operations the remote store has confirmed."""
    SyncOperation.objects.filter(pk__in=[operation.pk for operation in operations]).delete()


def record_failure(operation, error, *, max_retries, backoff_base, now=None) -> SyncOperation:
    """
    Count a rejected attempt.

    Below ``max_retries`` the operation backs off for
    ``backoff_base * 2 ** (retries - 1)`` seconds; at ``max_retries`` it
    becomes permanently failed and stays queued until acknowledged.
    """
    now = now or timezone.now()
    operation.retries += 1
    operation.last_error = str(error)[:2000]
    if operation.retries >= max_retries:
        operation.state = OperationState.FAILED_PERMANENT
        operation.next_attempt_at = None
    else:
        operation.state = OperationState.FAILED_RETRYABLE
        operation.next_attempt_at = now + timedelta(seconds=backoff_base * 2 ** (operation.retries - 1))
    operation.claimed_at = None
    operation.save(update_fields=['retries', 'last_error', 'state', 'next_attempt_at', 'claimed_at'])
    return operation


def pending_count(user=None) -> int:
    """Operations still waiting to be applied (permanent failures excluded)."""
    queryset = SyncOperation.objects.exclude(state=OperationState.FAILED_PERMANENT)
    if user is not None:
        queryset = queryset.filter(owner=user)
    return queryset.count()


def pending_entity_ids(user) -> set:
    """Ids (as strings) of installments that have any queued operation."""
    return {
        str(entity_id)
        for entity_id in SyncOperation.objects.filter(owner=user).values_list('entity_id', flat=True)
    }


def failed_operations(user=None) -> list:
    queryset = SyncOperation.objects.filter(state=OperationState.FAILED_PERMANENT).order_by('id')
    if user is not None:
        queryset = queryset.filter(owner=user)
    return list(queryset)


@transaction.atomic
def acknowledge_failure(operation: SyncOperation, *, retry: bool):
    """
    Resolve a permanently failed operation.

    Args:
        operation: An operation in ``failed_permanent`` state.
        retry: True puts it back in the queue with a fresh retry budget,
            False discards it.

    Returns:
        The requeued operation, or None when discarded.

    Raises:
        OperationNotFailedError: If the operation has not failed permanently.
    """
    if operation.state != OperationState.FAILED_PERMANENT:
        raise OperationNotFailedError(
            f"Operation {operation.operation_id} is {operation.state}, not permanently failed"
        )

    if not retry:
        logger.info("Discarding failed operation %s at user request", operation)
        operation.delete()
        return None

    operation.state = OperationState.PENDING
    operation.retries = 0
    operation.last_error = ''
    operation.next_attempt_at = None
    operation.save(update_fields=['state', 'retries', 'last_error', 'next_attempt_at'])
    logger.info("Requeued failed operation %s", operation)
    return operation


def forget_purged(entity_id) -> None:
    """Drop a purged tombstone once its hard delete is confirmed remotely."""
    Installment.objects.filter(id=entity_id, lifecycle=Lifecycle.PURGED).delete()

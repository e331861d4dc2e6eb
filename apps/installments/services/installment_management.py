"""
Installment management service.

Every local mutation runs in one transaction and queues exactly one sync
operation carrying what the remote store needs to replay it idempotently.
"""

import logging
import math
from typing import Optional
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from apps.accounts.models import User
from apps.installments.models import Installment, Lifecycle, Payment, Recurrence
from apps.jalali.conversion import date_from_jalali, jalali_from_date
from apps.jalali.formatting import format_persian_date, parse_persian_date
from apps.sync.services import store as sync_store

from .payloads import installment_payload
from .schedule import generate_payments, reconcile_schedule, schedule_dates
from ..exceptions import (
    InstallmentNotFoundError,
    InstallmentServiceError,
    InvalidLifecycleTransitionError,
    InvalidScheduleError,
    PaymentNotFoundError,
)


logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    'creditor_name',
    'item_description',
    'total_amount',
    'start_date',
    'start_date_jalali',
    'installment_count',
    'recurrence',
    'installment_amount',
    'reminder_days',
    'notes',
    'payment_time',
}

SCHEDULE_FIELDS = (
    'start_date_jalali',
    'installment_count',
    'recurrence',
    'installment_amount',
)


def _queue(installment, kind, *, payload, entity_type='installment', target_id=None):
    return sync_store.add_to_queue(
        user=installment.owner,
        kind=kind,
        entity_type=entity_type,
        entity_id=installment.id,
        target_id=target_id,
        payload=payload,
    )


def _resolve_start(start_date_jalali, start_date):
    if start_date_jalali:
        return format_persian_date(*parse_persian_date(start_date_jalali))
    if start_date:
        return jalali_from_date(start_date)
    raise InvalidScheduleError('A start date is required')


def _split_amount(total_amount, start_jalali, count, recurrence):
    """ceil(total / count), with ``never`` counting as one payment."""
    effective = len(schedule_dates(start_jalali, count, recurrence))
    return math.ceil(total_amount / effective)


def _require_active(installment):
    if not installment.is_active:
        raise InvalidLifecycleTransitionError(
            f"Installment {installment.id} is in the trash; restore it first"
        )


# =============================================================================
# Queries
# =============================================================================

def get_installment(*, installment_id: UUID, user: User) -> Installment:
    """
    Get one of the user's installments (active or trashed).

    Raises:
        InstallmentNotFoundError: Missing, purged, or owned by someone else.
    """
    try:
        return Installment.objects.for_user(user).visible().get(id=installment_id)
    except Installment.DoesNotExist:
        raise InstallmentNotFoundError(f"Installment {installment_id} not found")


def get_user_installments(*, user: User, include_deleted: bool = False):
    queryset = Installment.objects.for_user(user)
    queryset = queryset.visible() if include_deleted else queryset.active()
    return queryset.prefetch_related('payments').order_by('-created_at')


def get_trash(*, user: User):
    """Soft-deleted installments, most recently deleted first."""
    return Installment.objects.for_user(user).trashed().order_by('-deleted_at')


def _get_payment(installment, payment_id):
    try:
        return installment.payments.exclude(lifecycle=Lifecycle.PURGED).get(id=payment_id)
    except Payment.DoesNotExist:
        raise PaymentNotFoundError(
            f"Payment {payment_id} not found in installment {installment.id}"
        )


# =============================================================================
# Mutations
# =============================================================================

@transaction.atomic
def create_installment(
    *,
    owner: User,
    creditor_name: str,
    total_amount: int,
    start_date_jalali: Optional[str] = None,
    start_date=None,
    installment_count: int = 1,
    recurrence: str = Recurrence.MONTHLY,
    installment_amount: Optional[int] = None,
    reminder_days: int = 3,
    item_description: str = '',
    notes: str = '',
    payment_time=None,
    installment_id: Optional[UUID] = None
) -> Installment:
    """
    Create an installment with its generated payment schedule.

    Args:
        owner: User the installment belongs to
        creditor_name: Who is owed
        total_amount: Total debt in whole currency units
        start_date_jalali: First due date as ``YYYY/MM/DD`` (Jalali)
        start_date: First due date as a Gregorian date, used when
            ``start_date_jalali`` is not given
        installment_count: Number of payments (forced to 1 for ``never``)
        recurrence: daily, weekly, monthly, yearly or never
        installment_amount: Amount per payment; defaults to
            ``ceil(total_amount / installment_count)``
        reminder_days: Days before a due date to send a reminder
        item_description: What was bought
        notes: Free text
        payment_time: Optional time of day the payment is due
        installment_id: Client-generated id, for idempotent creation

    Returns:
        Created Installment instance

    Raises:
        InvalidRecurrenceError: Unknown recurrence
        InvalidScheduleError: Invalid count or missing start date
        InvalidDateError: Invalid Jalali start date
    """
    start = _resolve_start(start_date_jalali, start_date)
    if installment_amount is None:
        installment_amount = _split_amount(total_amount, start, installment_count, recurrence)
    schedule = generate_payments(start, installment_count, recurrence, installment_amount)

    fields = {
        'owner': owner,
        'creditor_name': creditor_name,
        'item_description': item_description,
        'total_amount': total_amount,
        'installment_amount': installment_amount,
        'start_date': date_from_jalali(start),
        'start_date_jalali': start,
        'installment_count': len(schedule),
        'recurrence': recurrence,
        'payment_time': payment_time,
        'reminder_days': reminder_days,
        'notes': notes,
    }
    if installment_id is not None:
        fields['id'] = installment_id
    installment = Installment.objects.create(**fields)

    Payment.objects.bulk_create([
        Payment(
            id=slot.id,
            installment=installment,
            due_date=slot.due_date,
            due_date_jalali=slot.due_date_jalali,
            amount=slot.amount,
        )
        for slot in schedule
    ])

    _queue(installment, 'create', payload=installment_payload(installment))
    logger.info("Created installment %s with %d payments", installment.id, len(schedule))
    return installment


@transaction.atomic
def update_installment(*, installment_id: UUID, user: User, **changes) -> Installment:
    """
    Edit an installment, rebuilding its schedule when schedule fields change.

    The rebuilt schedule keeps payment identity and paid history by position
    (see ``reconcile_schedule``). Payments in the trash are left alone.
    Changing the total, count or recurrence without an explicit
    ``installment_amount`` re-splits the total.

    Raises:
        InstallmentNotFoundError: Unknown installment
        InvalidLifecycleTransitionError: The installment is in the trash
        InstallmentServiceError: Unknown field in ``changes``
    """
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise InstallmentServiceError(f"Cannot edit fields: {', '.join(sorted(unknown))}")

    installment = get_installment(installment_id=installment_id, user=user)
    _require_active(installment)

    if 'start_date_jalali' in changes or 'start_date' in changes:
        changes['start_date_jalali'] = _resolve_start(
            changes.get('start_date_jalali'),
            changes.pop('start_date', None),
        )

    resplit = 'installment_amount' not in changes and any(
        field in changes and changes[field] != getattr(installment, field)
        for field in ('total_amount', 'installment_count', 'recurrence')
    )
    schedule_changed = resplit or any(
        field in changes and changes[field] != getattr(installment, field)
        for field in SCHEDULE_FIELDS
    )

    for field, value in changes.items():
        setattr(installment, field, value)

    if resplit:
        installment.installment_amount = _split_amount(
            installment.total_amount,
            installment.start_date_jalali,
            installment.installment_count,
            installment.recurrence,
        )

    if schedule_changed:
        live = list(installment.live_payments())
        schedule = reconcile_schedule(
            live,
            installment.start_date_jalali,
            installment.installment_count,
            installment.recurrence,
            installment.installment_amount,
        )
        keep = {slot.id for slot in schedule}
        Payment.objects.filter(id__in=[p.id for p in live if p.id not in keep]).delete()
        for slot in schedule:
            Payment.objects.update_or_create(
                id=slot.id,
                defaults={
                    'installment': installment,
                    'due_date': slot.due_date,
                    'due_date_jalali': slot.due_date_jalali,
                    'amount': slot.amount,
                    'is_paid': slot.is_paid,
                    'paid_date': slot.paid_date,
                },
            )
        installment.installment_count = len(schedule)

    installment.start_date = date_from_jalali(installment.start_date_jalali)
    installment.updated_at = timezone.now()
    installment.save()

    _queue(installment, 'update', payload=installment_payload(installment))
    logger.info(
        "Updated installment %s%s", installment.id,
        ' (schedule rebuilt)' if schedule_changed else '',
    )
    return installment


@transaction.atomic
def toggle_payment(
    *,
    installment_id: UUID,
    payment_id: UUID,
    user: User,
    is_paid: Optional[bool] = None
) -> Payment:
    """
    Mark a payment paid or unpaid.

    With ``is_paid=None`` the flag is flipped. Setting the state a payment
    already has changes nothing and queues nothing. The queued operation
    carries the target state, so replaying it is harmless.
    """
    installment = get_installment(installment_id=installment_id, user=user)
    _require_active(installment)
    payment = _get_payment(installment, payment_id)

    target = (not payment.is_paid) if is_paid is None else is_paid
    if target == payment.is_paid:
        return payment

    payment.is_paid = target
    payment.paid_date = timezone.localdate() if target else None
    payment.save(update_fields=['is_paid', 'paid_date'])
    installment.touch()

    _queue(
        installment,
        'toggle_payment',
        entity_type='payment',
        target_id=payment.id,
        payload={
            'payment_id': str(payment.id),
            'installment_id': str(installment.id),
            'is_paid': payment.is_paid,
            'paid_date': payment.paid_date.isoformat() if payment.paid_date else None,
            'updated_at': installment.updated_at.isoformat(),
        },
    )
    return payment


@transaction.atomic
def soft_delete_installment(*, installment_id: UUID, user: User) -> Installment:
    installment = get_installment(installment_id=installment_id, user=user)
    installment.soft_delete()
    _queue(
        installment,
        'soft_delete',
        payload={'id': str(installment.id), 'deleted_at': installment.deleted_at.isoformat()},
    )
    logger.info("Moved installment %s to the trash", installment.id)
    return installment


@transaction.atomic
def restore_installment(*, installment_id: UUID, user: User) -> Installment:
    installment = get_installment(installment_id=installment_id, user=user)
    installment.restore()
    _queue(installment, 'restore', payload={'id': str(installment.id)})
    logger.info("Restored installment %s", installment.id)
    return installment


@transaction.atomic
def soft_delete_payment(*, installment_id: UUID, payment_id: UUID, user: User) -> Payment:
    """Move a single payment to the trash."""
    installment = get_installment(installment_id=installment_id, user=user)
    _require_active(installment)
    payment = _get_payment(installment, payment_id)
    payment.soft_delete()
    _queue(
        installment,
        'soft_delete',
        entity_type='payment',
        target_id=payment.id,
        payload={
            'id': str(payment.id),
            'installment_id': str(installment.id),
            'deleted_at': payment.deleted_at.isoformat(),
        },
    )
    return payment


@transaction.atomic
def restore_payment(*, installment_id: UUID, payment_id: UUID, user: User) -> Payment:
    installment = get_installment(installment_id=installment_id, user=user)
    _require_active(installment)
    payment = _get_payment(installment, payment_id)
    payment.restore()
    _queue(
        installment,
        'restore',
        entity_type='payment',
        target_id=payment.id,
        payload={'id': str(payment.id), 'installment_id': str(installment.id)},
    )
    return payment

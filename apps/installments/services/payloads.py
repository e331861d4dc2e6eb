"""
Plain-dict representations of installments.

The same payload shape travels through the cache snapshot, the sync queue and
(minus the Jalali columns) the remote store rows.
"""

from datetime import datetime, timezone as dt_timezone
import uuid

from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime, parse_time

from apps.installments.models import Installment, Lifecycle, Payment
from apps.jalali.conversion import jalali_from_date


INSTALLMENT_COLUMNS = (
    'id',
    'user_id',
    'creditor_name',
    'item_description',
    'total_amount',
    'start_date',
    'installment_count',
    'recurrence',
    'payment_time',
    'installment_amount',
    'reminder_days',
    'notes',
    'created_at',
    'updated_at',
    'deleted_at',
)

PAYMENT_COLUMNS = (
    'id',
    'installment_id',
    'due_date',
    'amount',
    'is_paid',
    'paid_date',
    'deleted_at',
)


def _iso(value):
    return value.isoformat() if value is not None else None


def _as_date(value):
    if value is None or value == '':
        return None
    if isinstance(value, str):
        return parse_date(value[:10])
    if isinstance(value, datetime):
        return value.date()
    return value


def _as_datetime(value):
    if value is None or value == '':
        return None
    if isinstance(value, str):
        value = parse_datetime(value)
    if value is not None and timezone.is_naive(value):
        value = timezone.make_aware(value, dt_timezone.utc)
    return value


def _as_time(value):
    if not value:
        return None
    if isinstance(value, str):
        return parse_time(value)
    return value


def payment_payload(payment: Payment) -> dict:
    return {
        'id': str(payment.id),
        'installment_id': str(payment.installment_id),
        'due_date': _iso(payment.due_date),
        'due_date_jalali': payment.due_date_jalali,
        'amount': payment.amount,
        'is_paid': payment.is_paid,
        'paid_date': _iso(payment.paid_date),
        'deleted_at': _iso(payment.deleted_at),
    }


def installment_payload(installment: Installment) -> dict:
    """
    Serialise an installment with every non-purged payment, ordered by due date.

    This is the payload stored in the cache snapshot and carried by
    ``create``/``update`` sync operations.
    """
    payments = installment.payments.exclude(lifecycle=Lifecycle.PURGED).order_by('due_date')
    return {
        'id': str(installment.id),
        'user_id': str(installment.owner_id),
        'creditor_name': installment.creditor_name,
        'item_description': installment.item_description,
        'total_amount': installment.total_amount,
        'start_date': _iso(installment.start_date),
        'start_date_jalali': installment.start_date_jalali,
        'installment_count': installment.installment_count,
        'recurrence': installment.recurrence,
        'payment_time': installment.payment_time.strftime('%H:%M') if installment.payment_time else None,
        'installment_amount': installment.installment_amount,
        'reminder_days': installment.reminder_days,
        'notes': installment.notes,
        'created_at': _iso(installment.created_at),
        'updated_at': _iso(installment.updated_at),
        'deleted_at': _iso(installment.deleted_at),
        'payments': [payment_payload(payment) for payment in payments],
    }


def remote_rows(payload: dict):
    """
    Split a payload into the remote ``installments`` row and its
    ``installment_payments`` rows.

    Returns:
        tuple: ``(installment_row, payment_rows)``
    """
    installment_row = {column: payload.get(column) for column in INSTALLMENT_COLUMNS}
    payment_rows = []
    for payment in payload.get('payments') or []:
        row = {column: payment.get(column) for column in PAYMENT_COLUMNS}
        row['installment_id'] = payload['id']
        payment_rows.append(row)
    return installment_row, payment_rows


def _lifecycle_for(deleted_at):
    return Lifecycle.SOFT_DELETED if deleted_at else Lifecycle.ACTIVE


@transaction.atomic
def apply_payload(*, owner, payload: dict) -> Installment:
    """
    Write a payload (local or remote shape) to the local tables.

    The installment row is upserted, its payments are upserted by id, and
    local payments missing from the payload are removed. Jalali columns are
    derived when the payload only carries Gregorian dates.
    """
    start_date = _as_date(payload.get('start_date'))
    deleted_at = _as_datetime(payload.get('deleted_at'))

    defaults = {
        'owner': owner,
        'creditor_name': payload.get('creditor_name') or '',
        'item_description': payload.get('item_description') or '',
        'total_amount': payload.get('total_amount') or 0,
        'start_date': start_date,
        'start_date_jalali': payload.get('start_date_jalali') or jalali_from_date(start_date),
        'installment_count': payload.get('installment_count') or 1,
        'recurrence': payload.get('recurrence') or 'monthly',
        'payment_time': _as_time(payload.get('payment_time')),
        'installment_amount': payload.get('installment_amount'),
        'reminder_days': payload.get('reminder_days') or 0,
        'notes': payload.get('notes') or '',
        'deleted_at': deleted_at,
        'lifecycle': _lifecycle_for(deleted_at),
    }
    created_at = _as_datetime(payload.get('created_at'))
    updated_at = _as_datetime(payload.get('updated_at'))
    if created_at:
        defaults['created_at'] = created_at
    if updated_at:
        defaults['updated_at'] = updated_at

    installment, _ = Installment.objects.update_or_create(
        id=uuid.UUID(str(payload['id'])),
        defaults=defaults,
    )

    keep_ids = []
    for item in payload.get('payments') or []:
        due_date = _as_date(item.get('due_date'))
        payment_deleted_at = _as_datetime(item.get('deleted_at'))
        payment, _ = Payment.objects.update_or_create(
            id=uuid.UUID(str(item['id'])),
            defaults={
                'installment': installment,
                'due_date': due_date,
                'due_date_jalali': item.get('due_date_jalali') or jalali_from_date(due_date),
                'amount': item.get('amount') or 0,
                'is_paid': bool(item.get('is_paid')),
                'paid_date': _as_date(item.get('paid_date')),
                'deleted_at': payment_deleted_at,
                'lifecycle': _lifecycle_for(payment_deleted_at),
            },
        )
        keep_ids.append(payment.id)

    installment.payments.exclude(id__in=keep_ids).delete()
    return installment

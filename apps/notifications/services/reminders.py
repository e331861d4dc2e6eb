"""
Daily due-payment reminders.

The scan runs against the remote store so it covers every user's devices,
not just the installments cached on this node. Two reminders exist per
payment: ``upcoming`` on the day that is ``reminder_days`` before the due
date, and ``due`` on the due date itself.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, timedelta
import logging
import uuid

from django.utils import timezone
from django.utils.dateparse import parse_date

from apps.jalali.formatting import format_currency_persian
from apps.notifications.models import ReminderKind, ReminderLog
from apps.sync.exceptions import ConnectivityUnavailableError, RemoteRejectedError

from .push import get_subscriptions


logger = logging.getLogger(__name__)

UPCOMING_TITLE = '🔔 یادآوری قسط'
UPCOMING_BODY = 'قسط {creditor} به مبلغ {amount} تومان {days} روز دیگه میرسه'
DUE_TITLE = '⚠️ قسط {creditor} یادت نره!'
DUE_BODY = 'مبلغ قسط {amount}'


@dataclass
class Reminder:
    user_id: str
    installment_id: str
    payment_id: uuid.UUID
    kind: str
    due_date: date
    title: str
    body: str

    @property
    def tag(self) -> str:
        """Distinct per payment so the browser shows each reminder separately."""
        return f"installment-{self.installment_id}-{self.payment_id}"


@dataclass
class DispatchReport:
    checked: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    reminders: list = field(default_factory=list)
    users_without_subscriptions: list = field(default_factory=list)


def _build(kind, installment, payment, due_date):
    amount = format_currency_persian(payment['amount'] or 0)
    creditor = installment['creditor_name']
    if kind == ReminderKind.UPCOMING:
        title = UPCOMING_TITLE
        body = UPCOMING_BODY.format(creditor=creditor, amount=amount, days=installment['reminder_days'])
    else:
        title = DUE_TITLE.format(creditor=creditor)
        body = DUE_BODY.format(amount=amount)
    return Reminder(
        user_id=str(installment['user_id']),
        installment_id=str(installment['id']),
        payment_id=uuid.UUID(str(payment['id'])),
        kind=kind,
        due_date=due_date,
        title=title,
        body=body,
    )


def collect_due_reminders(remote, today: date) -> list:
    """
    Reminders to send on ``today``, ordered by due date.

    Only unpaid, non-deleted payments of non-deleted installments due between
    today and the longest reminder horizon are fetched.

    Raises:
        ConnectivityUnavailableError: The remote store cannot be reached
        RemoteRejectedError: A query was rejected
    """
    installments = remote.select(
        'installments',
        [('deleted_at', 'is', None)],
        columns='id,user_id,creditor_name,reminder_days',
    )
    if not installments:
        return []

    by_id = {str(row['id']): row for row in installments}
    horizon = max(row.get('reminder_days') or 0 for row in installments)

    payments = remote.select(
        'installment_payments',
        [
            ('installment_id', 'in', list(by_id)),
            ('is_paid', 'eq', False),
            ('deleted_at', 'is', None),
            ('due_date', 'gte', today),
            ('due_date', 'lte', today + timedelta(days=horizon)),
        ],
        order='due_date.asc',
    )

    reminders = []
    for payment in payments:
        installment = by_id.get(str(payment['installment_id']))
        if installment is None:
            continue
        due_date = parse_date(str(payment['due_date'])[:10])
        days = installment.get('reminder_days') or 0

        if days > 0 and due_date - timedelta(days=days) == today:
            reminders.append(_build(ReminderKind.UPCOMING, installment, payment, due_date))
        if due_date == today:
            reminders.append(_build(ReminderKind.DUE, installment, payment, due_date))

    logger.info(
        "Reminder scan for %s: %d installments, %d open payments, %d reminders",
        today, len(installments), len(payments), len(reminders),
    )
    return reminders


def _group_by_user(reminders):
    grouped = OrderedDict()
    for reminder in reminders:
        grouped.setdefault(reminder.user_id, []).append(reminder)
    return grouped


def dispatch_due_reminders(remote, notifier, today=None) -> DispatchReport:
    """
    Collect today's reminders and push them.

    Subscriptions are loaded once per user. A reminder counts as sent when at
    least one device accepted it; it is then logged and skipped by later
    runs on the same day.
    """
    today = today or timezone.localdate()
    reminders = collect_due_reminders(remote, today)
    report = DispatchReport(checked=len(reminders), reminders=reminders)
    if not reminders:
        return report

    already_sent = set(
        ReminderLog.objects.filter(
            sent_on=today,
            payment_id__in=[reminder.payment_id for reminder in reminders],
        ).values_list('payment_id', 'kind')
    )

    for user_id, items in _group_by_user(reminders).items():
        pending = [r for r in items if (r.payment_id, r.kind) not in already_sent]
        report.skipped += len(items) - len(pending)
        if not pending:
            continue

        try:
            subscriptions = get_subscriptions(remote, user_id)
        except (ConnectivityUnavailableError, RemoteRejectedError) as e:
            logger.warning("Could not load subscriptions for user %s: %s", user_id, e)
            report.failed += len(pending)
            continue

        if not subscriptions:
            logger.info("No subscriptions for user %s", user_id)
            report.users_without_subscriptions.append(user_id)
            report.failed += len(pending)
            continue

        for position, reminder in enumerate(pending):
            if not subscriptions:
                # Every endpoint turned out to be gone
                report.failed += len(pending) - position
                break
            results = notifier.send(subscriptions, reminder.title, reminder.body, tag=reminder.tag)
            delivered = sum(1 for result in results if result.success)
            subscriptions = [
                sub for sub, result in zip(subscriptions, results) if not result.removed
            ]

            if delivered:
                ReminderLog.objects.get_or_create(
                    payment_id=reminder.payment_id,
                    kind=reminder.kind,
                    sent_on=today,
                    defaults={'user_id': uuid.UUID(user_id), 'delivered': delivered},
                )
                report.sent += 1
            else:
                report.failed += 1

    logger.info(
        "Reminders for %s: %d sent, %d already sent, %d failed",
        today, report.sent, report.skipped, report.failed,
    )
    return report

"""
Recurrence schedule generation.

Turns a Jalali start date, a recurrence unit and a count into an ordered list
of due dates, and lines an edited schedule up against the payments that
already exist.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional
import uuid

from apps.installments.models import MAX_INSTALLMENT_COUNT, Recurrence
from apps.jalali.arithmetic import add_jalali_days, add_jalali_months, add_jalali_years
from apps.jalali.conversion import date_from_jalali
from apps.jalali.formatting import format_persian_date, parse_persian_date

from ..exceptions import InvalidRecurrenceError, InvalidScheduleError


_STEPS = {
    'daily': lambda value: add_jalali_days(value, 1),
    'weekly': lambda value: add_jalali_days(value, 7),
    'monthly': lambda value: add_jalali_months(value, 1),
    'yearly': lambda value: add_jalali_years(value, 1),
}


@dataclass
class ScheduledPayment:
    """A payment slot produced by the generator, not yet persisted."""

    due_date_jalali: str
    due_date: date
    amount: int
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    is_paid: bool = False
    paid_date: Optional[date] = None


def _effective_count(count, recurrence):
    if recurrence not in Recurrence.values:
        raise InvalidRecurrenceError(f"Unknown recurrence '{recurrence}'")
    if recurrence == Recurrence.NEVER:
        return 1
    if not isinstance(count, int) or isinstance(count, bool) or count < 1:
        raise InvalidScheduleError(f"Installment count must be a positive integer, got {count!r}")
    if count > MAX_INSTALLMENT_COUNT:
        raise InvalidScheduleError(f"Installment count cannot exceed {MAX_INSTALLMENT_COUNT}, got {count}")
    return count


def schedule_dates(start_jalali: str, count: int, recurrence: str) -> List[str]:
    """
    Return the Jalali due dates of a schedule.

    Each date is the previous one stepped by the recurrence unit, so a
    clamped month end stays clamped (``1403/06/31`` monthly gives
    ``1403/07/30``, ``1403/08/30``, ...).

    Raises:
        InvalidRecurrenceError: Unknown recurrence unit.
        InvalidScheduleError: ``count`` below 1 for a repeating schedule.
        InvalidDateError: ``start_jalali`` is not a valid Jalali date.
    """
    count = _effective_count(count, recurrence)
    start = format_persian_date(*parse_persian_date(start_jalali))

    dates = [start]
    if count > 1:
        step = _STEPS[recurrence]
        for _ in range(count - 1):
            dates.append(step(dates[-1]))
    return dates


def generate_payments(
    start_jalali: str,
    count: int,
    recurrence: str,
    amount: int
) -> List[ScheduledPayment]:
    """
    Build a fresh payment schedule.

    ``never`` yields a single payment at ``start_jalali`` whatever ``count``
    says; every other unit yields ``count`` unpaid payments with new ids.

    Example::

        >>> [p.due_date_jalali for p in generate_payments('1403/06/31', 3, 'monthly', 100)]
        ['1403/06/31', '1403/07/30', '1403/08/30']
    """
    return [
        ScheduledPayment(
            due_date_jalali=due,
            due_date=date_from_jalali(due),
            amount=amount,
        )
        for due in schedule_dates(start_jalali, count, recurrence)
    ]


def reconcile_schedule(
    existing: Iterable,
    new_start: str,
    new_count: int,
    new_recurrence: str,
    new_amount: int
) -> List[ScheduledPayment]:
    """
    Recompute a schedule while keeping payment identity and paid history.

    Existing payments (anything with ``id``, ``due_date``, ``is_paid`` and
    ``paid_date``) are sorted by due date and matched to the new dates by
    position: the i-th new slot keeps the id, paid flag and paid date of the
    i-th existing payment. Dates and amounts always come from the new
    schedule. Surplus new slots get fresh ids; surplus existing payments are
    dropped from the result.

    Identity follows position, not date: removing a payment from the middle
    of a plan shifts the history of every later payment one slot earlier.
    """
    ordered = sorted(existing, key=lambda payment: payment.due_date)
    schedule = generate_payments(new_start, new_count, new_recurrence, new_amount)

    for slot, previous in zip(schedule, ordered):
        slot.id = previous.id
        slot.is_paid = previous.is_paid
        slot.paid_date = previous.paid_date

    return schedule

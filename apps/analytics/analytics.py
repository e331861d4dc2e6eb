"""
Analytics Module
=================

Read-only aggregations over the local installment tables that power the
dashboard cards, plus the loan/profit calculator.

Classes:
    DashboardQueries: Static methods for dashboard figures.

Functions:
    loan_breakdown: Profit figures for a loan offer.

Example:
    Getting the dashboard cards::

        from apps.analytics.analytics import DashboardQueries

        summary = DashboardQueries.summary(user)
        print(f"Still owed: {summary['total_debt']}")
        print(f"Due this Jalali month: {summary['current_month_debt']}")

Note:
    Only active payments of active installments are counted. Amounts are
    whole currency units (toman), as stored.
"""

from datetime import timedelta

from django.db.models import Count, F, IntegerField, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from apps.installments.models import Installment, Lifecycle, Payment
from apps.jalali.arithmetic import jalali_month_bounds, month_remaining_days
from apps.jalali.conversion import gregorian_to_jalali, jalali_from_date
from apps.jalali.formatting import PERSIAN_MONTHS

from .exceptions import InvalidLoanParametersError


WEEK_DAYS = 7


def _sum(condition=None):
    return Coalesce(Sum('amount', filter=condition), 0, output_field=IntegerField())


def _count(condition=None):
    return Count('id', filter=condition)


class DashboardQueries:
    """
    Aggregations for the installment dashboard.

    Methods:
        live_payments: Payments that count towards any figure.
        summary: The four dashboard cards plus totals.
        due_between: Unpaid payments in a date window, with their creditor.
        overdue: Unpaid payments past their due date.
        monthly_breakdown: Unpaid amount per upcoming Jalali month.
    """

    @staticmethod
    def live_payments(user):
        return Payment.objects.filter(
            installment__owner=user,
            installment__lifecycle=Lifecycle.ACTIVE,
            lifecycle=Lifecycle.ACTIVE,
        )

    @staticmethod
    def summary(user, today=None):
        """
        Calculate the dashboard figures for ``user`` as of ``today``.

        Args:
            user (User): Owner of the installments.
            today (date, optional): Reference day. Defaults to the local date.

        Returns:
            dict: A dictionary containing:
                - total_debt (int): Unpaid amount due today or later.
                - current_month_debt (int): Unpaid amount due from today to
                  the end of the current Jalali month.
                - due_this_week_amount / due_this_week_count: Unpaid
                  payments due in the next 0-7 days.
                - overdue_amount / overdue_count: Unpaid payments before today.
                - paid_total / paid_count: Payments marked as paid.
                - active_installments (int): Installments not in the trash.
                - today_jalali (str), jalali_month (str),
                  month_remaining_days (int): Calendar context for the cards.

        Note:
            Overdue amounts are not part of ``total_debt``, matching the
            cards, which show what is still ahead.
        """
        today = today or timezone.localdate()
        year, month, _day = gregorian_to_jalali(today.year, today.month, today.day)
        _first, month_last = jalali_month_bounds(year, month)
        week_end = today + timedelta(days=WEEK_DAYS)

        unpaid = Q(is_paid=False)
        ahead = unpaid & Q(due_date__gte=today)
        this_month = ahead & Q(due_date__lte=month_last)
        this_week = ahead & Q(due_date__lte=week_end)
        overdue = unpaid & Q(due_date__lt=today)
        paid = Q(is_paid=True)

        figures = DashboardQueries.live_payments(user).aggregate(
            total_debt=_sum(ahead),
            current_month_debt=_sum(this_month),
            due_this_week_amount=_sum(this_week),
            due_this_week_count=_count(this_week),
            overdue_amount=_sum(overdue),
            overdue_count=_count(overdue),
            paid_total=_sum(paid),
            paid_count=_count(paid),
            unpaid_count=_count(unpaid),
        )

        figures.update({
            'active_installments': Installment.objects.for_user(user).active().count(),
            'today_jalali': jalali_from_date(today),
            'jalali_month': f"{PERSIAN_MONTHS[month - 1]} {year}",
            'month_remaining_days': month_remaining_days(today),
        })
        return figures

    @staticmethod
    def due_between(user, start, end):
        """Unpaid payments due in ``[start, end]``, earliest first."""
        return list(
            DashboardQueries.live_payments(user)
            .filter(is_paid=False, due_date__gte=start, due_date__lte=end)
            .order_by('due_date')
            .values(
                'id',
                'installment_id',
                'due_date',
                'due_date_jalali',
                'amount',
                creditor_name=F('installment__creditor_name'),
            )
        )

    @staticmethod
    def overdue(user, today=None):
        today = today or timezone.localdate()
        return list(
            DashboardQueries.live_payments(user)
            .filter(is_paid=False, due_date__lt=today)
            .order_by('due_date')
            .values(
                'id',
                'installment_id',
                'due_date',
                'due_date_jalali',
                'amount',
                creditor_name=F('installment__creditor_name'),
            )
        )

    @staticmethod
    def monthly_breakdown(user, today=None, months=6):
        """
        Unpaid amount per Jalali month, starting with the current one.

        Returns:
            list[dict]: ``{'month': 'YYYY/MM', 'label', 'amount', 'count'}``
            for each of the next ``months`` months, zeros included.
        """
        today = today or timezone.localdate()
        year, month, _day = gregorian_to_jalali(today.year, today.month, today.day)
        payments = DashboardQueries.live_payments(user).filter(is_paid=False, due_date__gte=today)

        result = []
        for _ in range(months):
            first, last = jalali_month_bounds(year, month)
            totals = payments.filter(due_date__gte=first, due_date__lte=last).aggregate(
                amount=_sum(),
                count=_count(),
            )
            result.append({
                'month': f"{year}/{month:02d}",
                'label': f"{PERSIAN_MONTHS[month - 1]} {year}",
                'amount': totals['amount'],
                'count': totals['count'],
            })
            month += 1
            if month > 12:
                year, month = year + 1, 1
        return result


def loan_breakdown(principal, months, total_payback=None, monthly_payment=None):
    """
    Work out what a loan really costs.

    Either ``total_payback`` or ``monthly_payment`` must be given; when only
    the monthly payment is known the total is ``monthly_payment * months``.

    Args:
        principal (int): Amount received.
        months (int): Repayment period in months.
        total_payback (int, optional): Total amount repaid.
        monthly_payment (int, optional): Amount repaid each month.

    Returns:
        dict: total_profit, profit_percent, annual_profit_percent,
        monthly_profit_percent, monthly_payment, annual_profit_amount and
        monthly_profit_amount. Percentages are rounded to two decimals,
        amounts to whole units.

    Raises:
        InvalidLoanParametersError: Non-positive inputs, or neither
            ``total_payback`` nor ``monthly_payment`` given.
    """
    if not principal or principal <= 0:
        raise InvalidLoanParametersError('principal must be positive')
    if not months or months <= 0:
        raise InvalidLoanParametersError('months must be positive')
    if not total_payback:
        if not monthly_payment:
            raise InvalidLoanParametersError('Provide total_payback or monthly_payment')
        total_payback = monthly_payment * months
    if total_payback <= 0:
        raise InvalidLoanParametersError('total_payback must be positive')

    total_profit = total_payback - principal
    profit_percent = total_profit / principal * 100

    return {
        'principal': principal,
        'months': months,
        'total_payback': total_payback,
        'total_profit': total_profit,
        'profit_percent': round(profit_percent, 2),
        'annual_profit_percent': round(profit_percent / (months / 12), 2),
        'monthly_profit_percent': round(profit_percent / months, 2),
        'monthly_payment': round(total_payback / months),
        'annual_profit_amount': round(total_profit / months * 12),
        'monthly_profit_amount': round(total_profit / months),
    }

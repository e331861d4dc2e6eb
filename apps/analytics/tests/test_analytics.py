import pytest
from datetime import timedelta

from apps.analytics.analytics import DashboardQueries, loan_breakdown
from apps.analytics.exceptions import InvalidLoanParametersError
from apps.installments.services import (
    soft_delete_installment,
    soft_delete_payment,
    toggle_payment,
)

from .conftest import TODAY


def _payments(installment):
    return list(installment.payments.order_by('due_date'))


# =============================================================================
# Dashboard Summary Tests
# =============================================================================

@pytest.mark.django_db
class TestSummary:

    def test_empty(self, analytics_user):
        summary = DashboardQueries.summary(analytics_user, TODAY)

        assert summary['total_debt'] == 0
        assert summary['current_month_debt'] == 0
        assert summary['overdue_count'] == 0
        assert summary['active_installments'] == 0

    def test_cards(self, analytics_user, monthly_loan, weekly_purchase, outsider_installment):
        summary = DashboardQueries.summary(analytics_user, TODAY)

        assert summary['total_debt'] == 2_300_000
        # Mordad 1403 ends on 2024-08-21, so only the weekly payments fall in it
        assert summary['current_month_debt'] == 300_000
        assert summary['due_this_week_count'] == 1
        assert summary['due_this_week_amount'] == 100_000
        assert summary['overdue_count'] == 1
        assert summary['overdue_amount'] == 1_000_000
        assert summary['unpaid_count'] == 6
        assert summary['active_installments'] == 2

    def test_calendar_context(self, analytics_user):
        summary = DashboardQueries.summary(analytics_user, TODAY)

        assert summary['today_jalali'] == '1403/05/11'
        assert summary['jalali_month'] == 'مرداد 1403'
        assert summary['month_remaining_days'] == 21

    def test_paid_payments_move_to_paid_total(self, analytics_user, weekly_purchase):
        second = _payments(weekly_purchase)[1]
        toggle_payment(installment_id=weekly_purchase.id, payment_id=second.id, user=analytics_user)

        summary = DashboardQueries.summary(analytics_user, TODAY)

        assert summary['paid_total'] == 100_000
        assert summary['paid_count'] == 1
        assert summary['total_debt'] == 200_000
        assert summary['current_month_debt'] == 200_000

    def test_trash_is_ignored(self, analytics_user, monthly_loan, weekly_purchase):
        soft_delete_installment(installment_id=monthly_loan.id, user=analytics_user)
        first = _payments(weekly_purchase)[0]
        soft_delete_payment(installment_id=weekly_purchase.id, payment_id=first.id, user=analytics_user)

        summary = DashboardQueries.summary(analytics_user, TODAY)

        assert summary['total_debt'] == 200_000
        assert summary['overdue_count'] == 0
        assert summary['due_this_week_count'] == 0
        assert summary['active_installments'] == 1

    def test_due_today_counts_as_this_week_not_overdue(self, analytics_user, weekly_purchase):
        due = _payments(weekly_purchase)[0].due_date

        summary = DashboardQueries.summary(analytics_user, due)

        assert summary['overdue_count'] == 0
        assert summary['due_this_week_count'] == 2  # due today and in 7 days


@pytest.mark.django_db
class TestPaymentLists:

    def test_due_between(self, analytics_user, monthly_loan, weekly_purchase):
        rows = DashboardQueries.due_between(analytics_user, TODAY, TODAY + timedelta(days=7))

        assert len(rows) == 1
        assert rows[0]['creditor_name'] == 'فروشگاه دیجی'
        assert rows[0]['due_date_jalali'] == '1403/05/13'
        assert rows[0]['amount'] == 100_000

    def test_overdue(self, analytics_user, monthly_loan, outsider_installment):
        rows = DashboardQueries.overdue(analytics_user, TODAY)

        assert [row['creditor_name'] for row in rows] == ['بانک ملت']
        assert rows[0]['due_date_jalali'] == '1403/05/05'

    def test_monthly_breakdown(self, analytics_user, monthly_loan, weekly_purchase):
        months = DashboardQueries.monthly_breakdown(analytics_user, TODAY, months=4)

        assert [m['month'] for m in months] == ['1403/05', '1403/06', '1403/07', '1403/08']
        assert [m['amount'] for m in months] == [300_000, 1_000_000, 1_000_000, 0]
        assert [m['count'] for m in months] == [3, 1, 1, 0]
        assert months[1]['label'] == 'شهریور 1403'

    def test_monthly_breakdown_wraps_the_year(self, analytics_user):
        # Esfand 1403
        months = DashboardQueries.monthly_breakdown(analytics_user, TODAY + timedelta(days=204), months=2)
        assert [m['month'] for m in months] == ['1403/12', '1404/01']


# =============================================================================
# Loan Calculator Tests
# =============================================================================

class TestLoanBreakdown:

    def test_with_total_payback(self):
        result = loan_breakdown(principal=100_000_000, months=12, total_payback=130_000_000)

        assert result['total_profit'] == 30_000_000
        assert result['profit_percent'] == 30.0
        assert result['annual_profit_percent'] == 30.0
        assert result['monthly_profit_percent'] == 2.5
        assert result['monthly_payment'] == 10_833_333
        assert result['monthly_profit_amount'] == 2_500_000
        assert result['annual_profit_amount'] == 30_000_000

    def test_with_monthly_payment(self):
        result = loan_breakdown(principal=200_000_000, months=24, monthly_payment=10_000_000)

        assert result['total_payback'] == 240_000_000
        assert result['total_profit'] == 40_000_000
        assert result['profit_percent'] == 20.0
        assert result['annual_profit_percent'] == 10.0
        assert result['monthly_profit_percent'] == 0.83

    def test_total_payback_wins(self):
        result = loan_breakdown(principal=100, months=10, total_payback=150, monthly_payment=1)
        assert result['total_payback'] == 150

    @pytest.mark.parametrize('kwargs', [
        {'principal': 0, 'months': 12, 'total_payback': 100},
        {'principal': 100, 'months': 0, 'total_payback': 100},
        {'principal': 100, 'months': 12},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(InvalidLoanParametersError):
            loan_breakdown(**kwargs)

"""
Serializers for analytics app.

Input Serializers:
    DashboardQuerySerializer - Optional reference date for the dashboard
    LoanCalculatorInputSerializer - Loan offer to evaluate

Response Serializers:
    DashboardSummarySerializer - Dashboard cards
    DuePaymentSerializer - One unpaid payment in a dashboard list
    MonthlyDebtSerializer - Unpaid amount in one Jalali month
    DashboardResponseSerializer - Whole dashboard
    LoanBreakdownSerializer - Calculator result
"""

from rest_framework import serializers

from apps.jalali.conversion import date_from_jalali
from apps.jalali.exceptions import InvalidDateError
from apps.jalali.formatting import parse_currency_input


class CurrencyField(serializers.IntegerField):
    """
    Integer amount that also accepts formatted input.

    ``"۱۲,۵۰۰,۰۰۰"``, ``"12,500,000 تومان"`` and ``12500000`` all parse to
    the same value.
    """

    def to_internal_value(self, data):
        if isinstance(data, str):
            data = parse_currency_input(data)
        return super().to_internal_value(data)


# =============================================================================
# Input Serializers
# =============================================================================

class DashboardQuerySerializer(serializers.Serializer):
    """
    Query Parameters:
        date (str): Jalali reference day ``YYYY/MM/DD``; defaults to today.
        months (int): How many Jalali months the breakdown covers.
    """

    date = serializers.CharField(required=False, max_length=10)
    months = serializers.IntegerField(required=False, default=6, min_value=1, max_value=24)

    def validate_date(self, value):
        try:
            return date_from_jalali(value)
        except InvalidDateError as e:
            raise serializers.ValidationError(str(e))


class LoanCalculatorInputSerializer(serializers.Serializer):
    principal = CurrencyField(min_value=1)
    months = CurrencyField(min_value=1, max_value=600)
    total_payback = CurrencyField(min_value=1, required=False, allow_null=True)
    monthly_payment = CurrencyField(min_value=1, required=False, allow_null=True)

    def validate(self, attrs):
        if not attrs.get('total_payback') and not attrs.get('monthly_payment'):
            raise serializers.ValidationError({
                'total_payback': 'Provide total_payback or monthly_payment.'
            })
        return attrs


# =============================================================================
# Response Serializers
# =============================================================================

class DashboardSummarySerializer(serializers.Serializer):
    total_debt = serializers.IntegerField()
    current_month_debt = serializers.IntegerField()
    due_this_week_amount = serializers.IntegerField()
    due_this_week_count = serializers.IntegerField()
    overdue_amount = serializers.IntegerField()
    overdue_count = serializers.IntegerField()
    paid_total = serializers.IntegerField()
    paid_count = serializers.IntegerField()
    unpaid_count = serializers.IntegerField()
    active_installments = serializers.IntegerField()
    today_jalali = serializers.CharField()
    jalali_month = serializers.CharField()
    month_remaining_days = serializers.IntegerField()


class DuePaymentSerializer(serializers.Serializer):
    """Nested serializer for a payment in the this-week / overdue lists."""
    id = serializers.UUIDField()
    installment_id = serializers.UUIDField()
    creditor_name = serializers.CharField()
    due_date = serializers.DateField()
    due_date_jalali = serializers.CharField()
    amount = serializers.IntegerField()


class MonthlyDebtSerializer(serializers.Serializer):
    month = serializers.CharField()
    label = serializers.CharField()
    amount = serializers.IntegerField()
    count = serializers.IntegerField()


class DashboardResponseSerializer(serializers.Serializer):
    """Response serializer for the dashboard."""
    summary = DashboardSummarySerializer()
    this_week = DuePaymentSerializer(many=True)
    overdue = DuePaymentSerializer(many=True)
    months = MonthlyDebtSerializer(many=True)


class LoanBreakdownSerializer(serializers.Serializer):
    principal = serializers.IntegerField()
    months = serializers.IntegerField()
    total_payback = serializers.IntegerField()
    total_profit = serializers.IntegerField()
    profit_percent = serializers.FloatField()
    annual_profit_percent = serializers.FloatField()
    monthly_profit_percent = serializers.FloatField()
    monthly_payment = serializers.IntegerField()
    annual_profit_amount = serializers.IntegerField()
    monthly_profit_amount = serializers.IntegerField()


class ErrorSerializer(serializers.Serializer):
    """Standard error response serializer."""
    error = serializers.CharField()

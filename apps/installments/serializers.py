from rest_framework import serializers

from apps.jalali.exceptions import InvalidDateError
from apps.jalali.formatting import format_persian_date, parse_persian_date
from .models import MAX_INSTALLMENT_COUNT, Installment, Lifecycle, Payment, Recurrence


def _validate_jalali(value):
    try:
        return format_persian_date(*parse_persian_date(value))
    except InvalidDateError as e:
        raise serializers.ValidationError(str(e))


# =============================================================================
# Input Serializers
# =============================================================================

class InstallmentInputSerializer(serializers.Serializer):
    """
    Validate installment create/update payloads.

    Either ``start_date_jalali`` (YYYY/MM/DD, Persian digits accepted) or
    ``start_date`` (Gregorian) is required on create.
    """

    id = serializers.UUIDField(required=False)
    creditor_name = serializers.CharField(max_length=200)
    item_description = serializers.CharField(max_length=500, required=False, allow_blank=True)
    total_amount = serializers.IntegerField(min_value=0)
    start_date_jalali = serializers.CharField(max_length=10, required=False)
    start_date = serializers.DateField(required=False)
    installment_count = serializers.IntegerField(
        min_value=1, max_value=MAX_INSTALLMENT_COUNT, required=False, default=1
    )
    recurrence = serializers.ChoiceField(choices=Recurrence.choices, required=False, default=Recurrence.MONTHLY)
    installment_amount = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    reminder_days = serializers.IntegerField(min_value=0, max_value=365, required=False, default=3)
    notes = serializers.CharField(required=False, allow_blank=True)
    payment_time = serializers.TimeField(required=False, allow_null=True)

    def validate_start_date_jalali(self, value):
        return _validate_jalali(value)

    def validate(self, attrs):
        if not self.partial and not attrs.get('start_date_jalali') and not attrs.get('start_date'):
            raise serializers.ValidationError({
                'start_date_jalali': 'Provide start_date_jalali or start_date.'
            })
        return attrs


class TogglePaymentSerializer(serializers.Serializer):
    """``is_paid`` omitted flips the current state."""

    payment_id = serializers.UUIDField()
    is_paid = serializers.BooleanField(required=False, allow_null=True, default=None)


class InstallmentListQuerySerializer(serializers.Serializer):
    include_deleted = serializers.BooleanField(required=False, default=False)


# =============================================================================
# Output Serializers
# =============================================================================

class PaymentSerializer(serializers.ModelSerializer):

    class Meta:
        model = Payment
        fields = [
            'id',
            'due_date',
            'due_date_jalali',
            'amount',
            'is_paid',
            'paid_date',
            'lifecycle',
            'deleted_at',
        ]
        read_only_fields = fields


class InstallmentSerializer(serializers.ModelSerializer):
    """Installment with its (non-purged) payments and paid progress."""

    payments = serializers.SerializerMethodField()
    paid_count = serializers.SerializerMethodField()
    remaining_amount = serializers.SerializerMethodField()

    class Meta:
        model = Installment
        fields = [
            'id',
            'creditor_name',
            'item_description',
            'total_amount',
            'installment_amount',
            'start_date',
            'start_date_jalali',
            'installment_count',
            'recurrence',
            'payment_time',
            'reminder_days',
            'notes',
            'lifecycle',
            'created_at',
            'updated_at',
            'deleted_at',
            'payments',
            'paid_count',
            'remaining_amount',
        ]
        read_only_fields = fields

    def _payments(self, obj):
        return [p for p in obj.payments.all() if p.lifecycle != Lifecycle.PURGED]

    def get_payments(self, obj):
        payments = sorted(self._payments(obj), key=lambda p: p.due_date)
        return PaymentSerializer(payments, many=True).data

    def get_paid_count(self, obj) -> int:
        return sum(1 for p in self._payments(obj) if p.is_active and p.is_paid)

    def get_remaining_amount(self, obj) -> int:
        return sum(p.amount for p in self._payments(obj) if p.is_active and not p.is_paid)

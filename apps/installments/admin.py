from django.contrib import admin
from apps.installments.models import Installment, Payment


class PaymentInline(admin.TabularInline):
    """Inline admin for scheduled payments."""
    model = Payment
    extra = 0
    fields = [
        'due_date_jalali',
        'due_date',
        'amount',
        'is_paid',
        'paid_date',
        'lifecycle',
    ]
    readonly_fields = ['due_date']


@admin.register(Installment)
class InstallmentAdmin(admin.ModelAdmin):
    """Admin interface for installments."""

    list_display = [
        'creditor_name',
        'owner',
        'total_amount',
        'installment_count',
        'recurrence',
        'start_date_jalali',
        'lifecycle',
        'created_at'
    ]
    list_filter = [
        'recurrence',
        'lifecycle',
        'created_at'
    ]
    search_fields = [
        'creditor_name',
        'item_description',
        'owner__email'
    ]
    readonly_fields = ['id', 'start_date', 'created_at', 'updated_at', 'deleted_at']
    inlines = [PaymentInline]

    fieldsets = (
        ('Basic Info', {
            'fields': ('id', 'owner', 'creditor_name', 'item_description', 'notes')
        }),
        ('Schedule', {
            'fields': (
                'total_amount',
                'installment_amount',
                'start_date_jalali',
                'start_date',
                'installment_count',
                'recurrence',
                'payment_time',
                'reminder_days',
            )
        }),
        ('Lifecycle', {
            'fields': ('lifecycle', 'deleted_at', 'created_at', 'updated_at')
        }),
    )


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['installment', 'due_date_jalali', 'amount', 'is_paid', 'lifecycle']
    list_filter = ['is_paid', 'lifecycle']
    search_fields = ['installment__creditor_name']

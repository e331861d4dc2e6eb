from django.contrib import admin
from apps.notifications.models import ReminderLog


@admin.register(ReminderLog)
class ReminderLogAdmin(admin.ModelAdmin):
    list_display = ['payment_id', 'kind', 'sent_on', 'user_id', 'delivered']
    list_filter = ['kind', 'sent_on']
    search_fields = ['payment_id', 'user_id']
    readonly_fields = ['created_at']
    date_hierarchy = 'sent_on'

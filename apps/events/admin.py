from django.contrib import admin
from apps.events.models import CalendarEvent


@admin.register(CalendarEvent)
class CalendarEventAdmin(admin.ModelAdmin):
    list_display = ['title', 'owner', 'event_date_jalali', 'event_time', 'is_holiday']
    list_filter = ['is_holiday', 'reminder_minutes']
    search_fields = ['title', 'description', 'owner__email']
    readonly_fields = ['id', 'event_date', 'is_holiday', 'created_at', 'updated_at']

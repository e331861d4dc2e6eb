from django.contrib import admin
from apps.sync.models import CacheEntry, OperationState, SyncOperation
from apps.sync.services import acknowledge_failure


@admin.register(SyncOperation)
class SyncOperationAdmin(admin.ModelAdmin):
    """Admin interface for the sync queue."""

    list_display = [
        'id',
        'kind',
        'entity_type',
        'entity_id',
        'owner',
        'state',
        'retries',
        'next_attempt_at',
        'created_at'
    ]
    list_filter = ['state', 'kind', 'entity_type']
    search_fields = ['entity_id', 'operation_id', 'owner__email']
    readonly_fields = ['operation_id', 'payload', 'created_at', 'last_error', 'claimed_at']
    ordering = ['id']

    actions = ['requeue_failed']

    @admin.action(description='Requeue permanently failed operations')
    def requeue_failed(self, request, queryset):
        count = 0
        for operation in queryset.filter(state=OperationState.FAILED_PERMANENT):
            acknowledge_failure(operation, retry=True)
            count += 1
        self.message_user(request, f'Requeued {count} operation(s).')


@admin.register(CacheEntry)
class CacheEntryAdmin(admin.ModelAdmin):
    list_display = ['owner', 'stamped_at']
    search_fields = ['owner__email']

from rest_framework import serializers

from .models import SyncOperation


class SyncOperationSerializer(serializers.ModelSerializer):

    class Meta:
        model = SyncOperation
        fields = [
            'operation_id',
            'kind',
            'entity_type',
            'entity_id',
            'target_id',
            'state',
            'retries',
            'last_error',
            'next_attempt_at',
            'created_at',
        ]
        read_only_fields = fields


class SyncStatusSerializer(serializers.Serializer):
    """What the client shows in its sync indicator."""

    online_mode = serializers.BooleanField(help_text="False when no remote store is configured")
    reachable = serializers.BooleanField()
    pending_count = serializers.IntegerField()
    cache_timestamp = serializers.IntegerField(allow_null=True, help_text="Epoch ms of the last pull")
    failed_operations = SyncOperationSerializer(many=True)


class SyncReportSerializer(serializers.Serializer):
    applied = serializers.IntegerField()
    failed = serializers.IntegerField()
    skipped = serializers.IntegerField()
    exhausted = serializers.ListField(child=serializers.CharField())
    aborted = serializers.BooleanField()
    pending_count = serializers.IntegerField()


class AcknowledgeSerializer(serializers.Serializer):
    """``retry`` requeues the operation with a fresh retry budget; False discards it."""

    retry = serializers.BooleanField(default=False)

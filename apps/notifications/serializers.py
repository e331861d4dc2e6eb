from rest_framework import serializers

from .models import ReminderLog


class SubscriptionKeysSerializer(serializers.Serializer):
    p256dh = serializers.CharField()
    auth = serializers.CharField()


class SubscriptionSerializer(serializers.Serializer):
    """A browser ``PushSubscription.toJSON()`` payload."""

    endpoint = serializers.URLField(max_length=1000)
    keys = SubscriptionKeysSerializer()


class UnsubscribeSerializer(serializers.Serializer):
    endpoint = serializers.URLField(max_length=1000)


class SendNotificationSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    body = serializers.CharField(max_length=1000)
    url = serializers.CharField(max_length=500, required=False, default='/')


class DispatchReportSerializer(serializers.Serializer):
    checked = serializers.IntegerField()
    sent = serializers.IntegerField()
    skipped = serializers.IntegerField()
    failed = serializers.IntegerField()


class ReminderLogSerializer(serializers.ModelSerializer):

    class Meta:
        model = ReminderLog
        fields = ['payment_id', 'kind', 'sent_on', 'delivered', 'created_at']
        read_only_fields = fields

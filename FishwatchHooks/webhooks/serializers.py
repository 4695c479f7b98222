from rest_framework import serializers

from .models import Delivery, DeliveryAttempt, EventType, Subscription


class SubscriptionSerializer(serializers.ModelSerializer):
    subscriptionId = serializers.UUIDField(source='id', read_only=True)
    targetUrl = serializers.URLField(source='target_url', max_length=500)
    secret = serializers.CharField(source='secret_key', max_length=256, write_only=True)
    eventTypes = serializers.ListField(
        source='event_types',
        child=serializers.ChoiceField(choices=EventType.choices),
        allow_empty=False
    )
    failureCount = serializers.IntegerField(source='failure_count', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Subscription
        fields = ['subscriptionId', 'owner', 'targetUrl', 'secret', 'eventTypes',
                  'status', 'failureCount', 'createdAt', 'updatedAt']
        read_only_fields = ['status']


class EventSerializer(serializers.Serializer):
    eventType = serializers.ChoiceField(choices=EventType.choices)
    data = serializers.DictField()


class DeliverySerializer(serializers.ModelSerializer):
    deliveryId = serializers.UUIDField(source='id', read_only=True)
    eventType = serializers.CharField(source='event.event_type', read_only=True)
    eventId = serializers.UUIDField(source='event_id', read_only=True)
    deliveredAt = serializers.DateTimeField(source='delivered_at', read_only=True)
    statusCode = serializers.IntegerField(source='status_code', read_only=True)
    attempts = serializers.IntegerField(source='attempt_number', read_only=True)
    nextRetryAt = serializers.DateTimeField(source='next_retry_at', read_only=True)
    errorMessage = serializers.CharField(source='error_message', read_only=True)
    responseTime = serializers.IntegerField(source='response_time_ms', read_only=True)

    class Meta:
        model = Delivery
        fields = ['deliveryId', 'eventType', 'eventId', 'deliveredAt', 'status', 'statusCode',
                  'attempts', 'nextRetryAt', 'errorMessage', 'responseTime']
        read_only_fields = fields


class DeliveryAttemptSerializer(serializers.ModelSerializer):
    attemptNumber = serializers.IntegerField(source='attempt_number', read_only=True)
    statusCode = serializers.IntegerField(source='status_code', read_only=True)
    errorMessage = serializers.CharField(source='error_message', read_only=True)
    responseTime = serializers.IntegerField(source='response_time_ms', read_only=True)
    timestamp = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = DeliveryAttempt
        fields = ['attemptNumber', 'trigger', 'status', 'statusCode', 'errorMessage',
                  'responseTime', 'timestamp']
        read_only_fields = fields


class DeliveryDetailSerializer(DeliverySerializer):
    subscriptionId = serializers.UUIDField(source='subscription_id', read_only=True)
    subscriptionUrl = serializers.SerializerMethodField(method_name='get_subscription_url')
    history = DeliveryAttemptSerializer(source='attempts', many=True, read_only=True)

    class Meta(DeliverySerializer.Meta):
        fields = DeliverySerializer.Meta.fields + ['subscriptionId', 'subscriptionUrl', 'history']
        read_only_fields = fields

    def get_subscription_url(self, obj):
        return obj.subscription.target_url

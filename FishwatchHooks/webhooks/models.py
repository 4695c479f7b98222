from django.db import models
import uuid


class EventType(models.TextChoices):
    REPORT_CREATED = 'report.created', 'Report created'
    REPORT_UPDATED = 'report.updated', 'Report updated'
    ALERT_CREATED = 'alert.created', 'Alert created'
    VESSEL_MATCHED = 'vessel.matched', 'Vessel matched'


class Event(models.Model):
    """An immutable fact handed over by an upstream producer."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event_type = models.CharField(max_length=100, choices=EventType.choices)
    payload = models.JSONField(default=dict)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['event_type', '-created_at'], name='webhooks_ev_type_created_idx'),
        ]

    def __str__(self):
        return f"Event {self.id} ({self.event_type})"


class Subscription(models.Model):
    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        FAILING = 'failing', 'Failing'
        DISABLED = 'disabled', 'Disabled'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.CharField(max_length=255)
    target_url = models.URLField(max_length=500)
    secret_key = models.CharField(max_length=256)
    event_types = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    failure_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Subscription {self.id}"

    def accepts(self, event_type):
        return event_type in (self.event_types or [])


class Delivery(models.Model):
    """Lifecycle of one event being delivered to one subscription."""

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        SUCCESS = 'success', 'Success'
        FAILED = 'failed', 'Failed'
        PENDING_RETRY = 'pending_retry', 'Pending retry'
        EXHAUSTED = 'exhausted', 'Exhausted'

    class Trigger(models.TextChoices):
        INITIAL = 'initial', 'Initial'
        SCHEDULED = 'scheduled', 'Scheduled'
        MANUAL = 'manual', 'Manual'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(Event, on_delete=models.PROTECT, related_name='deliveries')
    subscription = models.ForeignKey(Subscription, on_delete=models.CASCADE, related_name='deliveries')
    attempt_number = models.PositiveSmallIntegerField(default=1)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    trigger = models.CharField(max_length=20, choices=Trigger.choices, default=Trigger.INITIAL)
    auto_retry = models.BooleanField(default=True)
    # Set once this delivery has been charged to its subscription's failure count
    exhaustion_counted = models.BooleanField(default=False)
    status_code = models.IntegerField(null=True, blank=True)
    error_message = models.TextField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    next_retry_at = models.DateTimeField(null=True, blank=True)
    response_time_ms = models.PositiveIntegerField(null=True, blank=True)
    # Set while a worker owns the current attempt
    locked_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['subscription', '-created_at'], name='webhooks_de_sub_created_idx'),
            models.Index(fields=['status', 'next_retry_at'], name='webhooks_de_status_retry_idx'),
        ]
        constraints = [
            models.UniqueConstraint(fields=['event', 'subscription'], name='webhooks_delivery_event_subscription_uniq'),
        ]

    def __str__(self):
        return f"Delivery {self.id} ({self.status}, attempt {self.attempt_number})"


class DeliveryAttempt(models.Model):
    """Append-only ledger row for one executed attempt."""

    class Status(models.TextChoices):
        SUCCESS = 'success', 'Success'
        FAILED = 'failed', 'Failed'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    delivery = models.ForeignKey(Delivery, on_delete=models.CASCADE, related_name='attempts')
    attempt_number = models.PositiveSmallIntegerField()
    trigger = models.CharField(max_length=20, choices=Delivery.Trigger.choices)
    status = models.CharField(max_length=20, choices=Status.choices)
    status_code = models.IntegerField(null=True, blank=True)
    error_message = models.TextField(blank=True)
    response_time_ms = models.PositiveIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['delivery', 'created_at'], name='webhooks_at_delivery_idx'),
        ]

    @property
    def is_success(self):
        return self.status == self.Status.SUCCESS

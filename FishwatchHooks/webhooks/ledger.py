import logging

from django.core.exceptions import ValidationError
from django.utils import timezone

from .exceptions import DeliveryNotFound, InvalidQuery
from .executor import Success
from .models import Delivery, DeliveryAttempt

logger = logging.getLogger(__name__)


def record(event, subscription, auto_retry=True):
    delivery = Delivery.objects.create(
        event=event,
        subscription=subscription,
        attempt_number=1,
        status=Delivery.Status.PENDING,
        trigger=Delivery.Trigger.INITIAL,
        auto_retry=auto_retry,
    )
    logger.debug(f"Recorded delivery {delivery.id} of event {event.id} to subscription {subscription.id}")
    return delivery


def update(delivery_id, **fields):
    fields['updated_at'] = timezone.now()
    updated = Delivery.objects.filter(pk=delivery_id).update(**fields)
    if not updated:
        raise DeliveryNotFound(delivery_id)


def record_attempt(delivery, outcome):
    if isinstance(outcome, Success):
        return DeliveryAttempt.objects.create(
            delivery=delivery,
            attempt_number=delivery.attempt_number,
            trigger=delivery.trigger,
            status=DeliveryAttempt.Status.SUCCESS,
            status_code=outcome.status_code,
            error_message='',
            response_time_ms=outcome.response_time_ms,
        )
    return DeliveryAttempt.objects.create(
        delivery=delivery,
        attempt_number=delivery.attempt_number,
        trigger=delivery.trigger,
        status=DeliveryAttempt.Status.FAILED,
        status_code=outcome.status_code,
        error_message=outcome.error_message,
        response_time_ms=outcome.response_time_ms,
    )


def get(delivery_id):
    try:
        return Delivery.objects.select_related('event', 'subscription').get(pk=delivery_id)
    except (Delivery.DoesNotExist, ValidationError, ValueError):
        raise DeliveryNotFound(delivery_id)


def attempts(delivery_id):
    return list(DeliveryAttempt.objects.filter(delivery_id=delivery_id).order_by('created_at', 'attempt_number'))


def query(subscription_id, status=None):
    """A subscription's deliveries, newest first, optionally filtered by status."""
    queryset = Delivery.objects.filter(subscription_id=subscription_id).select_related('event')
    if status:
        if status not in Delivery.Status.values:
            raise InvalidQuery(f"Unknown delivery status: {status}")
        queryset = queryset.filter(status=status)
    return queryset.order_by('-created_at', '-id')

import logging

from django.conf import settings
from django.db import transaction
from django.db.models import Case, F, Value, When

from .exceptions import SubscriptionNotFound
from .models import Subscription

logger = logging.getLogger(__name__)

Status = Subscription.Status


def on_success(subscription_id):
    """Reset the failure counter and bring a failing subscription back to active."""
    updated = Subscription.objects.filter(pk=subscription_id).update(
        failure_count=0,
        status=Case(
            When(status=Status.FAILING, then=Value(Status.ACTIVE)),
            default=F('status'),
        ),
    )
    if not updated:
        raise SubscriptionNotFound(subscription_id)


def on_exhausted(subscription_id):
    """Count one exhausted delivery; flag the subscription as failing at the threshold."""
    threshold = settings.WEBHOOK_FAILING_THRESHOLD
    with transaction.atomic():
        try:
            subscription = Subscription.objects.select_for_update().get(pk=subscription_id)
        except Subscription.DoesNotExist:
            raise SubscriptionNotFound(subscription_id)

        subscription.failure_count = F('failure_count') + 1
        subscription.save(update_fields=['failure_count', 'updated_at'])
        subscription.refresh_from_db(fields=['failure_count', 'status'])

        # Disabling is a manual action; only active subscriptions are flagged here
        if subscription.failure_count >= threshold and subscription.status == Status.ACTIVE:
            subscription.status = Status.FAILING
            subscription.save(update_fields=['status', 'updated_at'])
            logger.warning(
                f"Subscription {subscription.id} marked failing after "
                f"{subscription.failure_count} exhausted deliveries"
            )
    return subscription


def disable(subscription_id):
    updated = Subscription.objects.filter(pk=subscription_id).update(status=Status.DISABLED)
    if not updated:
        raise SubscriptionNotFound(subscription_id)
    logger.info(f"Subscription {subscription_id} disabled")


def enable(subscription_id):
    """Re-enable a subscription, keeping it failing if its counter is still over the threshold."""
    threshold = settings.WEBHOOK_FAILING_THRESHOLD
    updated = Subscription.objects.filter(pk=subscription_id, status=Status.DISABLED).update(
        status=Case(
            When(failure_count__gte=threshold, then=Value(Status.FAILING)),
            default=Value(Status.ACTIVE),
        ),
    )
    if not updated and not Subscription.objects.filter(pk=subscription_id).exists():
        raise SubscriptionNotFound(subscription_id)
    logger.info(f"Subscription {subscription_id} enabled")

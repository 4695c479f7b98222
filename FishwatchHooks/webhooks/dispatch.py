import logging
from datetime import timedelta

from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from django.utils import timezone

from . import backoff, executor, health, ledger
from .exceptions import (
    DeliveryNotFound,
    InvalidRetryRequest,
    InvalidTransition,
    RetryRateLimited,
    UnknownEventType,
)
from .models import Delivery, Event, EventType, Subscription

logger = logging.getLogger(__name__)

Status = Delivery.Status

TRANSITIONS = {
    Status.PENDING: {Status.SUCCESS, Status.PENDING_RETRY, Status.FAILED, Status.EXHAUSTED},
    Status.PENDING_RETRY: {Status.PENDING},
    Status.FAILED: {Status.PENDING},
    Status.EXHAUSTED: {Status.PENDING},
    Status.SUCCESS: set(),
}

MANUALLY_RETRYABLE = (Status.PENDING_RETRY, Status.FAILED, Status.EXHAUSTED)


def check_transition(current, target):
    try:
        allowed = TRANSITIONS[Status(current)]
    except ValueError:
        raise InvalidTransition(current, target)
    if target not in allowed:
        raise InvalidTransition(current, target)


def _enqueue(delivery_id):
    from .tasks import deliver_webhook

    deliver_webhook.delay(str(delivery_id))


def emit(event_type, payload):
    """Store a new event and fan it out to every subscription that wants it."""
    if event_type not in EventType.values:
        raise UnknownEventType(event_type)

    event = Event.objects.create(event_type=event_type, payload=payload)
    logger.info(f"Event {event.id} ({event_type}) received")
    fan_out(event)
    return event


def fan_out(event):
    """Create one delivery per subscribed active or failing subscription and queue attempt 1.

    Subscriptions flagged as failing still get the first attempt, but their
    new deliveries are not retried automatically.
    """
    subscriptions = Subscription.objects.filter(
        status__in=[Subscription.Status.ACTIVE, Subscription.Status.FAILING]
    )

    deliveries = []
    for subscription in subscriptions:
        if not subscription.accepts(event.event_type):
            continue
        delivery = ledger.record(
            event,
            subscription,
            auto_retry=subscription.status == Subscription.Status.ACTIVE,
        )
        deliveries.append(delivery)

    for delivery in deliveries:
        _enqueue(delivery.id)

    logger.info(f"Event {event.id} fanned out to {len(deliveries)} subscriptions")
    return deliveries


def _claim(delivery_id, now):
    """Take ownership of a pending attempt. Returns False if another worker has it."""
    claimed = Delivery.objects.filter(
        pk=delivery_id,
        status=Status.PENDING,
        locked_at__isnull=True,
    ).update(locked_at=now, updated_at=now)
    return claimed == 1


def execute_delivery(delivery_id):
    """Run the pending attempt of a delivery and record its outcome.

    Returns the updated delivery, or None when there was nothing to run.
    """
    now = timezone.now()
    if not _claim(delivery_id, now):
        logger.info(f"Delivery {delivery_id} is not pending or already claimed, skipping")
        return None

    delivery = ledger.get(delivery_id)
    logger.info(
        f"Delivering event {delivery.event_id} to {delivery.subscription.target_url} "
        f"(delivery {delivery.id}, attempt {delivery.attempt_number})"
    )

    outcome = executor.attempt(delivery.subscription, delivery.event, delivery.attempt_number)

    return record_outcome(delivery, outcome, claimed_at=now)


def record_outcome(delivery, outcome, claimed_at):
    with transaction.atomic():
        try:
            current = Delivery.objects.select_for_update().get(pk=delivery.pk)
        except Delivery.DoesNotExist:
            # Subscription deleted while the attempt was in flight
            raise DeliveryNotFound(delivery.pk)
        if (current.status != Status.PENDING
                or current.attempt_number != delivery.attempt_number
                or current.locked_at != claimed_at):
            # The claim was recovered by the scan and handed to another worker
            logger.warning(
                f"Delivery {delivery.id} changed while attempt {delivery.attempt_number} "
                f"was in flight, discarding its outcome"
            )
            return None

        ledger.record_attempt(current, outcome)
        now = timezone.now()

        if isinstance(outcome, executor.Success):
            _apply_success(current, outcome, now)
        elif isinstance(outcome, executor.Failure):
            _apply_failure(current, outcome, now)
        else:
            raise TypeError(f"Unexpected delivery outcome {outcome!r}")

    return ledger.get(current.pk)


def _apply_success(delivery, outcome, now):
    check_transition(delivery.status, Status.SUCCESS)
    ledger.update(
        delivery.pk,
        status=Status.SUCCESS,
        status_code=outcome.status_code,
        error_message=None,
        response_time_ms=outcome.response_time_ms,
        delivered_at=now,
        next_retry_at=None,
        locked_at=None,
    )
    health.on_success(delivery.subscription_id)
    logger.info(f"Delivery {delivery.pk} succeeded on attempt {delivery.attempt_number}")


def _apply_failure(delivery, outcome, now):
    failure_fields = {
        'status_code': outcome.status_code,
        'error_message': outcome.error_message,
        'response_time_ms': outcome.response_time_ms,
        'locked_at': None,
    }
    retry_at = backoff.next_retry_at(delivery.attempt_number, now)

    if retry_at is None:
        check_transition(delivery.status, Status.EXHAUSTED)
        ledger.update(
            delivery.pk,
            status=Status.EXHAUSTED,
            next_retry_at=None,
            exhaustion_counted=True,
            **failure_fields
        )
        # A manually retried exhausted delivery was already counted
        if not delivery.exhaustion_counted:
            health.on_exhausted(delivery.subscription_id)
        logger.warning(
            f"Delivery {delivery.pk} exhausted after attempt {delivery.attempt_number}: "
            f"{outcome.error_message}"
        )
    elif delivery.auto_retry:
        check_transition(delivery.status, Status.PENDING_RETRY)
        ledger.update(delivery.pk, status=Status.PENDING_RETRY, next_retry_at=retry_at, **failure_fields)
        logger.info(
            f"Delivery {delivery.pk} attempt {delivery.attempt_number} failed "
            f"({outcome.error_message}), retrying at {retry_at.isoformat()}"
        )
    else:
        check_transition(delivery.status, Status.FAILED)
        ledger.update(delivery.pk, status=Status.FAILED, next_retry_at=None, **failure_fields)
        logger.info(
            f"Delivery {delivery.pk} attempt {delivery.attempt_number} failed and "
            f"its subscription is failing, waiting for a manual retry"
        )


def _advance(delivery, next_attempt, trigger, now):
    """Compare-and-set a retryable delivery back to pending for ``next_attempt``."""
    check_transition(delivery.status, Status.PENDING)
    moved = Delivery.objects.filter(
        pk=delivery.pk,
        status=delivery.status,
        attempt_number=delivery.attempt_number,
    ).update(
        status=Status.PENDING,
        attempt_number=next_attempt,
        trigger=trigger,
        next_retry_at=None,
        locked_at=None,
        updated_at=now,
    )
    return moved == 1


def scan_due_retries(now=None, limit=None):
    """One tick of the background retry loop.

    Work is derived purely from persisted rows, so a crashed scan or worker
    is recovered by the next tick. Returns the ids that were queued.
    """
    now = now or timezone.now()
    limit = limit or settings.WEBHOOK_SCAN_BATCH_SIZE

    due = list(
        Delivery.objects.filter(status=Status.PENDING_RETRY, next_retry_at__lte=now)
        .exclude(subscription__status=Subscription.Status.DISABLED)
        .order_by('next_retry_at')[:limit]
    )

    queued = []
    for delivery in due:
        if _advance(delivery, delivery.attempt_number + 1, Delivery.Trigger.SCHEDULED, now):
            queued.append(delivery.pk)
        else:
            logger.debug(f"Delivery {delivery.pk} was claimed by another scan")

    queued.extend(_recover_stranded(now, limit))

    for delivery_id in queued:
        _enqueue(delivery_id)

    if queued:
        logger.info(f"Retry scan queued {len(queued)} deliveries")
    return queued


def _recover_stranded(now, limit):
    """Release pending attempts whose worker died or whose task was lost."""
    stale_before = now - timedelta(seconds=settings.WEBHOOK_CLAIM_TIMEOUT)
    stranded = list(
        Delivery.objects.filter(status=Status.PENDING, updated_at__lte=stale_before)
        .exclude(subscription__status=Subscription.Status.DISABLED)
        .order_by('updated_at')
        .values_list('pk', 'locked_at')[:limit]
    )

    recovered = []
    for delivery_id, locked_at in stranded:
        released = Delivery.objects.filter(
            pk=delivery_id,
            status=Status.PENDING,
            locked_at=locked_at,
        ).update(locked_at=None, updated_at=now)
        if released:
            logger.warning(f"Requeueing stranded delivery {delivery_id}")
            recovered.append(delivery_id)
    return recovered


def _check_rate_limit(delivery_id):
    key = f"manual_retry_{delivery_id}"
    window = settings.WEBHOOK_MANUAL_RETRY_WINDOW
    cache.add(key, 0, timeout=window)
    try:
        count = cache.incr(key)
    except ValueError:
        # Key expired between add and incr
        cache.set(key, 1, timeout=window)
        count = 1
    if count > settings.WEBHOOK_MANUAL_RETRY_LIMIT:
        raise RetryRateLimited(delivery_id, retry_after=window)


def request_manual_retry(delivery_id):
    """Queue an immediate attempt for a delivery an operator asked to retry.

    Returns ``(delivery, estimated_retry_time)``. Works for disabled
    subscriptions too. An exhausted delivery re-runs its final attempt, so
    the attempt number never goes past the maximum.
    """
    delivery = ledger.get(delivery_id)
    _check_rate_limit(delivery.pk)

    if delivery.status == Status.SUCCESS:
        raise InvalidRetryRequest(f"Delivery {delivery.pk} was already delivered")
    if delivery.status not in MANUALLY_RETRYABLE:
        raise InvalidRetryRequest(f"Delivery {delivery.pk} is already queued")

    if delivery.status == Status.EXHAUSTED:
        next_attempt = delivery.attempt_number
    else:
        next_attempt = min(delivery.attempt_number + 1, backoff.max_attempts())

    now = timezone.now()
    if not _advance(delivery, next_attempt, Delivery.Trigger.MANUAL, now):
        raise InvalidRetryRequest(f"Delivery {delivery.pk} changed while the retry was requested")

    _enqueue(delivery.pk)
    logger.info(f"Manual retry queued for delivery {delivery.pk} as attempt {next_attempt}")
    return ledger.get(delivery.pk), now


def disable_subscription(subscription_id):
    """Stop automatic attempts; the next scan tick skips the subscription's deliveries."""
    health.disable(subscription_id)


def enable_subscription(subscription_id):
    health.enable(subscription_id)

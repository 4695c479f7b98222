import logging

from celery import shared_task

from . import dispatch
from .exceptions import DeliveryNotFound

logger = logging.getLogger(__name__)


@shared_task
def deliver_webhook(delivery_id):
    """
    Run the pending attempt of a delivery.
    Queued on fan-out, by the retry scan and by manual retries.
    """
    # Ensure delivery_id is treated as string if it's passed as list
    if isinstance(delivery_id, list) and len(delivery_id) > 0:
        delivery_id = delivery_id[0]

    try:
        dispatch.execute_delivery(delivery_id)
    except DeliveryNotFound:
        logger.error(f"Delivery {delivery_id} not found")


@shared_task
def scan_due_retries():
    """
    Periodic task driving automatic retries.
    Failures propagate so the beat tick is reported as failed; the next tick
    re-derives its work from the persisted pending_retry rows.
    """
    queued = dispatch.scan_due_retries()
    return len(queued)

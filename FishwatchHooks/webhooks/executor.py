import json
import logging
import time
from dataclasses import dataclass

import requests
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder

from .signing import sign

logger = logging.getLogger(__name__)

ERROR_DETAIL_LIMIT = 1000


@dataclass(frozen=True)
class Success:
    status_code: int
    response_time_ms: int


@dataclass(frozen=True)
class Failure:
    status_code: int
    error_message: str
    response_time_ms: int


def rfc3339(value):
    return value.isoformat().replace('+00:00', 'Z')


def build_body(event, attempt_number):
    """Serialize the wire body. The returned bytes are exactly what gets signed and sent."""
    body = {
        'eventId': str(event.id),
        'eventType': event.event_type,
        'timestamp': rfc3339(event.created_at),
        'attemptNumber': attempt_number,
        'data': event.payload,
    }
    return json.dumps(body, cls=DjangoJSONEncoder, separators=(',', ':')).encode('utf-8')


def build_headers(subscription, event, attempt_number, body):
    return {
        'Content-Type': 'application/json',
        'User-Agent': settings.WEBHOOK_USER_AGENT,
        'X-Webhook-Signature': sign(subscription.secret_key, body),
        'X-Webhook-Delivery-Attempt': str(attempt_number),
        'X-Webhook-Event-Id': str(event.id),
        'X-Webhook-Event-Type': event.event_type,
    }


def _elapsed_ms(started):
    return int((time.monotonic() - started) * 1000)


def attempt(subscription, event, attempt_number):
    """POST ``event`` to the subscription endpoint once and classify the outcome."""
    body = build_body(event, attempt_number)
    headers = build_headers(subscription, event, attempt_number, body)
    timeout = settings.WEBHOOK_DELIVERY_TIMEOUT

    started = time.monotonic()
    try:
        response = requests.post(
            subscription.target_url,
            data=body,
            headers=headers,
            timeout=timeout
        )
    except requests.Timeout:
        return Failure(None, f"Timed out after {timeout}s", _elapsed_ms(started))
    except requests.ConnectionError as e:
        return Failure(None, f"Connection error: {e}"[:ERROR_DETAIL_LIMIT], _elapsed_ms(started))
    except requests.RequestException as e:
        return Failure(None, str(e)[:ERROR_DETAIL_LIMIT], _elapsed_ms(started))

    elapsed = _elapsed_ms(started)
    if 200 <= response.status_code < 300:
        return Success(response.status_code, elapsed)

    logger.debug(f"Endpoint {subscription.target_url} answered {response.status_code} for event {event.id}")
    detail = f"HTTP {response.status_code}"
    if response.text:
        detail = f"{detail}: {response.text}"
    return Failure(response.status_code, detail[:ERROR_DETAIL_LIMIT], elapsed)

import random
from datetime import timedelta

from django.conf import settings


def max_attempts():
    return settings.WEBHOOK_MAX_ATTEMPTS


def next_delay(attempt_number):
    """Delay before the attempt following ``attempt_number``, or None when exhausted."""
    if attempt_number < 1:
        raise ValueError(f"attempt_number must be >= 1, got {attempt_number}")
    if attempt_number >= max_attempts():
        return None

    schedule = settings.WEBHOOK_RETRY_BACKOFF
    seconds = schedule[min(attempt_number - 1, len(schedule) - 1)]

    # Jitter only shortens the delay; the table stays an upper bound
    jitter = settings.WEBHOOK_RETRY_JITTER
    if jitter:
        seconds = seconds * (1 - random.uniform(0, min(jitter, 1.0)))

    return timedelta(seconds=seconds)


def next_retry_at(attempt_number, now):
    delay = next_delay(attempt_number)
    if delay is None:
        return None
    return now + delay

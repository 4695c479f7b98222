from rest_framework import status


class WebhookError(Exception):
    code = 'webhook_error'
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message):
        self.message = message
        super().__init__(message)

    def to_dict(self):
        return {'error': {'code': self.code, 'message': self.message}}


class DeliveryNotFound(WebhookError):
    code = 'delivery_not_found'
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, delivery_id):
        self.delivery_id = delivery_id
        super().__init__(f"Delivery {delivery_id} not found")


class SubscriptionNotFound(WebhookError):
    code = 'subscription_not_found'
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, subscription_id):
        self.subscription_id = subscription_id
        super().__init__(f"Subscription {subscription_id} not found")


class InvalidRetryRequest(WebhookError):
    """The delivery is not in a state that can be retried manually."""

    code = 'invalid_retry'


class RetryRateLimited(WebhookError):
    code = 'retry_rate_limited'
    http_status = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, delivery_id, retry_after):
        self.delivery_id = delivery_id
        self.retry_after = retry_after
        super().__init__(f"Too many manual retries for delivery {delivery_id}")


class InvalidQuery(WebhookError):
    code = 'invalid_query'


class UnknownEventType(WebhookError):
    code = 'unknown_event_type'

    def __init__(self, event_type):
        self.event_type = event_type
        super().__init__(f"Unknown event type: {event_type}")


class InvalidTransition(WebhookError):
    """Raised when code tries to move a delivery along an edge the state machine does not have."""

    code = 'invalid_transition'
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move delivery from {current} to {target}")

import json
from datetime import datetime, timezone as dt_timezone
from unittest.mock import patch, MagicMock

import requests
from django.test import TestCase

from webhooks import executor
from webhooks.models import Event, EventType, Subscription
from webhooks.signing import verify


def mock_response(status_code, text=''):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    return response


class ExecutorTests(TestCase):
    def setUp(self):
        self.subscription = Subscription.objects.create(
            owner='coastguard-ops',
            target_url='https://example.com/webhooks',
            secret_key='test-secret',
            event_types=['report.created']
        )
        self.event = Event.objects.create(
            event_type=EventType.REPORT_CREATED,
            payload={'reportId': 'rpt-77', 'location': {'lat': -12.5, 'lon': 130.8}}
        )
        Event.objects.filter(pk=self.event.pk).update(
            created_at=datetime(2026, 5, 4, 3, 2, 1, tzinfo=dt_timezone.utc)
        )
        self.event.refresh_from_db()

    @patch('requests.post')
    def test_success_outcome_and_wire_format(self, mock_post):
        mock_post.return_value = mock_response(204)

        outcome = executor.attempt(self.subscription, self.event, 3)

        self.assertIsInstance(outcome, executor.Success)
        self.assertEqual(outcome.status_code, 204)
        self.assertGreaterEqual(outcome.response_time_ms, 0)

        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], 'https://example.com/webhooks')
        self.assertEqual(kwargs['timeout'], 10)

        headers = kwargs['headers']
        self.assertEqual(headers['Content-Type'], 'application/json')
        self.assertEqual(headers['X-Webhook-Delivery-Attempt'], '3')
        self.assertEqual(headers['X-Webhook-Event-Id'], str(self.event.id))
        self.assertTrue(verify('test-secret', kwargs['data'], headers['X-Webhook-Signature']))

        body = json.loads(kwargs['data'])
        self.assertEqual(body, {
            'eventId': str(self.event.id),
            'eventType': 'report.created',
            'timestamp': '2026-05-04T03:02:01Z',
            'attemptNumber': 3,
            'data': {'reportId': 'rpt-77', 'location': {'lat': -12.5, 'lon': 130.8}},
        })

    @patch('requests.post')
    def test_non_2xx_is_failure(self, mock_post):
        mock_post.return_value = mock_response(503, 'Service Unavailable')

        outcome = executor.attempt(self.subscription, self.event, 1)

        self.assertIsInstance(outcome, executor.Failure)
        self.assertEqual(outcome.status_code, 503)
        self.assertEqual(outcome.error_message, 'HTTP 503: Service Unavailable')

    @patch('requests.post')
    def test_redirect_is_failure(self, mock_post):
        mock_post.return_value = mock_response(301)

        outcome = executor.attempt(self.subscription, self.event, 1)

        self.assertIsInstance(outcome, executor.Failure)
        self.assertEqual(outcome.error_message, 'HTTP 301')

    @patch('requests.post', side_effect=requests.Timeout("read timed out"))
    def test_timeout_is_failure_without_status(self, mock_post):
        outcome = executor.attempt(self.subscription, self.event, 1)

        self.assertIsInstance(outcome, executor.Failure)
        self.assertIsNone(outcome.status_code)
        self.assertEqual(outcome.error_message, 'Timed out after 10s')

    @patch('requests.post', side_effect=requests.ConnectionError("Connection refused"))
    def test_connection_error_is_failure(self, mock_post):
        outcome = executor.attempt(self.subscription, self.event, 1)

        self.assertIsInstance(outcome, executor.Failure)
        self.assertIsNone(outcome.status_code)
        self.assertEqual(outcome.error_message, 'Connection error: Connection refused')

    @patch('requests.post')
    def test_long_error_bodies_are_truncated(self, mock_post):
        mock_post.return_value = mock_response(500, 'x' * 5000)

        outcome = executor.attempt(self.subscription, self.event, 1)

        self.assertEqual(len(outcome.error_message), executor.ERROR_DETAIL_LIMIT)

    @patch('requests.post')
    def test_does_not_retry_internally(self, mock_post):
        mock_post.return_value = mock_response(500)

        executor.attempt(self.subscription, self.event, 1)

        mock_post.assert_called_once()

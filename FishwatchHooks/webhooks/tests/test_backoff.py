from datetime import datetime, timedelta, timezone as dt_timezone

from django.test import SimpleTestCase, override_settings

from webhooks import backoff


class NextDelayTests(SimpleTestCase):
    def test_fixed_schedule(self):
        """Delays follow the documented table for attempts 1 to 5"""
        expected = {
            1: timedelta(minutes=1),
            2: timedelta(minutes=5),
            3: timedelta(minutes=15),
            4: timedelta(hours=1),
            5: timedelta(hours=6),
        }
        for attempt_number, delay in expected.items():
            with self.subTest(attempt_number=attempt_number):
                self.assertEqual(backoff.next_delay(attempt_number), delay)

    def test_final_attempt_is_exhausted(self):
        self.assertIsNone(backoff.next_delay(6))
        self.assertEqual(backoff.max_attempts(), 6)

    def test_rejects_attempt_zero(self):
        with self.assertRaises(ValueError):
            backoff.next_delay(0)

    @override_settings(WEBHOOK_RETRY_JITTER=0.5)
    def test_jitter_never_exceeds_table(self):
        for _ in range(50):
            delay = backoff.next_delay(4)
            self.assertLessEqual(delay, timedelta(hours=1))
            self.assertGreaterEqual(delay, timedelta(minutes=30))

    def test_next_retry_at(self):
        now = datetime(2026, 3, 1, 8, 0, tzinfo=dt_timezone.utc)
        self.assertEqual(backoff.next_retry_at(2, now), now + timedelta(minutes=5))
        self.assertIsNone(backoff.next_retry_at(6, now))

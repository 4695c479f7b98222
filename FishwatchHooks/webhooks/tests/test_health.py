import uuid

from django.test import TestCase

from webhooks import health
from webhooks.exceptions import SubscriptionNotFound
from webhooks.models import Subscription


class HealthTrackerTests(TestCase):
    def setUp(self):
        self.subscription = Subscription.objects.create(
            owner='fisheries-agency',
            target_url='https://example.com/webhooks',
            secret_key='test-secret',
            event_types=['alert.created']
        )

    def test_exhausted_increments_by_one(self):
        health.on_exhausted(self.subscription.id)
        self.subscription.refresh_from_db()
        self.assertEqual(self.subscription.failure_count, 1)
        self.assertEqual(self.subscription.status, Subscription.Status.ACTIVE)

    def test_failing_exactly_at_threshold(self):
        for expected in range(1, 5):
            health.on_exhausted(self.subscription.id)
            self.subscription.refresh_from_db()
            self.assertEqual(self.subscription.failure_count, expected)
            self.assertEqual(self.subscription.status, Subscription.Status.ACTIVE)

        health.on_exhausted(self.subscription.id)
        self.subscription.refresh_from_db()
        self.assertEqual(self.subscription.failure_count, 5)
        self.assertEqual(self.subscription.status, Subscription.Status.FAILING)

    def test_never_auto_disables(self):
        for _ in range(12):
            health.on_exhausted(self.subscription.id)
        self.subscription.refresh_from_db()
        self.assertEqual(self.subscription.status, Subscription.Status.FAILING)
        self.assertEqual(self.subscription.failure_count, 12)

    def test_success_resets_and_restores_active(self):
        Subscription.objects.filter(pk=self.subscription.pk).update(
            failure_count=7, status=Subscription.Status.FAILING
        )
        health.on_success(self.subscription.id)
        self.subscription.refresh_from_db()
        self.assertEqual(self.subscription.failure_count, 0)
        self.assertEqual(self.subscription.status, Subscription.Status.ACTIVE)

    def test_success_keeps_disabled_subscription_disabled(self):
        Subscription.objects.filter(pk=self.subscription.pk).update(
            failure_count=2, status=Subscription.Status.DISABLED
        )
        health.on_success(self.subscription.id)
        self.subscription.refresh_from_db()
        self.assertEqual(self.subscription.failure_count, 0)
        self.assertEqual(self.subscription.status, Subscription.Status.DISABLED)

    def test_exhausted_on_disabled_subscription_stays_disabled(self):
        Subscription.objects.filter(pk=self.subscription.pk).update(
            failure_count=4, status=Subscription.Status.DISABLED
        )
        health.on_exhausted(self.subscription.id)
        self.subscription.refresh_from_db()
        self.assertEqual(self.subscription.failure_count, 5)
        self.assertEqual(self.subscription.status, Subscription.Status.DISABLED)

    def test_enable_restores_failing_when_over_threshold(self):
        Subscription.objects.filter(pk=self.subscription.pk).update(
            failure_count=5, status=Subscription.Status.DISABLED
        )
        health.enable(self.subscription.id)
        self.subscription.refresh_from_db()
        self.assertEqual(self.subscription.status, Subscription.Status.FAILING)

    def test_disable_then_enable(self):
        health.disable(self.subscription.id)
        self.subscription.refresh_from_db()
        self.assertEqual(self.subscription.status, Subscription.Status.DISABLED)

        health.enable(self.subscription.id)
        self.subscription.refresh_from_db()
        self.assertEqual(self.subscription.status, Subscription.Status.ACTIVE)

    def test_unknown_subscription(self):
        with self.assertRaises(SubscriptionNotFound):
            health.on_exhausted(uuid.uuid4())
        with self.assertRaises(SubscriptionNotFound):
            health.on_success(uuid.uuid4())
        with self.assertRaises(SubscriptionNotFound):
            health.enable(uuid.uuid4())

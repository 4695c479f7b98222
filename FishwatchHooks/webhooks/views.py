from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from django.shortcuts import get_object_or_404
import logging

from . import dispatch, ledger
from .exceptions import WebhookError, RetryRateLimited
from .models import Subscription
from .pagination import DeliveryCursorPagination
from .serializers import (
    SubscriptionSerializer,
    EventSerializer,
    DeliverySerializer,
    DeliveryDetailSerializer
)

logger = logging.getLogger(__name__)


def error_response(error):
    response = Response(error.to_dict(), status=error.http_status)
    if isinstance(error, RetryRateLimited):
        response['Retry-After'] = str(error.retry_after)
    return response


# Subscription CRUD endpoints
class SubscriptionList(APIView):
    def get(self, request):
        """List all webhook subscriptions"""
        subscriptions = Subscription.objects.order_by('created_at')
        serializer = SubscriptionSerializer(subscriptions, many=True)
        return Response(serializer.data)

    def post(self, request):
        """Create a new webhook subscription"""
        serializer = SubscriptionSerializer(data=request.data)
        if serializer.is_valid():
            subscription = serializer.save()
            logger.info(f"Subscription {subscription.id} created for {subscription.target_url}")
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


class SubscriptionDetail(APIView):
    def get(self, request, pk):
        """Get subscription details"""
        subscription = get_object_or_404(Subscription, pk=pk)
        serializer = SubscriptionSerializer(subscription)
        return Response(serializer.data)

    def put(self, request, pk):
        """Update subscription target, secret and event types"""
        subscription = get_object_or_404(Subscription, pk=pk)
        serializer = SubscriptionSerializer(subscription, data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    def delete(self, request, pk):
        """Delete subscription"""
        subscription = get_object_or_404(Subscription, pk=pk)
        subscription.delete()
        logger.info(f"Subscription {pk} deleted")
        return Response(status=status.HTTP_204_NO_CONTENT)


class SubscriptionDisable(APIView):
    def post(self, request, pk):
        """Stop automatic deliveries and retries for a subscription"""
        subscription = get_object_or_404(Subscription, pk=pk)
        dispatch.disable_subscription(subscription.id)
        subscription.refresh_from_db()
        return Response(SubscriptionSerializer(subscription).data)


class SubscriptionEnable(APIView):
    def post(self, request, pk):
        """Resume deliveries for a disabled subscription"""
        subscription = get_object_or_404(Subscription, pk=pk)
        dispatch.enable_subscription(subscription.id)
        subscription.refresh_from_db()
        return Response(SubscriptionSerializer(subscription).data)


# Event ingestion endpoint
class EventIngestion(APIView):
    def post(self, request):
        """Accept an event from an upstream producer and fan it out"""
        serializer = EventSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            event = dispatch.emit(
                serializer.validated_data['eventType'],
                serializer.validated_data['data']
            )
        except WebhookError as e:
            return error_response(e)

        return Response(
            {"eventId": str(event.id), "deliveries": event.deliveries.count()},
            status=status.HTTP_202_ACCEPTED
        )


# Delivery listing for a subscription
class DeliveryList(APIView):
    def get(self, request, subscription_id):
        """List a subscription's deliveries, newest first, with status filter and cursor"""
        subscription = get_object_or_404(Subscription, pk=subscription_id)
        paginator = DeliveryCursorPagination()
        try:
            deliveries = ledger.query(subscription.id, status=request.query_params.get('status'))
            page = paginator.paginate_queryset(deliveries, request, view=self)
        except WebhookError as e:
            return error_response(e)

        serializer = DeliverySerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)


# Delivery status endpoint
class DeliveryDetail(APIView):
    def get(self, request, delivery_id):
        """Get delivery status and attempt history"""
        try:
            delivery = ledger.get(delivery_id)
        except WebhookError as e:
            return error_response(e)
        serializer = DeliveryDetailSerializer(delivery)
        return Response(serializer.data)


class DeliveryRetry(APIView):
    def post(self, request, delivery_id):
        """Queue a manual retry of one delivery"""
        try:
            delivery, estimated = dispatch.request_manual_retry(delivery_id)
        except WebhookError as e:
            logger.info(f"Manual retry of delivery {delivery_id} rejected: {e.message}")
            return error_response(e)

        return Response(
            {
                "status": "queued",
                "deliveryId": str(delivery.id),
                "attemptNumber": delivery.attempt_number,
                "estimatedRetryTime": estimated.isoformat().replace('+00:00', 'Z'),
            },
            status=status.HTTP_202_ACCEPTED
        )

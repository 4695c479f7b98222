from django.urls import path
from .views import *

urlpatterns = [
    path('subscriptions/', SubscriptionList.as_view(), name='subscription-list'),
    path('subscriptions/<uuid:pk>/', SubscriptionDetail.as_view(), name='subscription-detail'),
    path('subscriptions/<uuid:pk>/disable/', SubscriptionDisable.as_view(), name='subscription-disable'),
    path('subscriptions/<uuid:pk>/enable/', SubscriptionEnable.as_view(), name='subscription-enable'),
    path('subscriptions/<uuid:subscription_id>/deliveries/', DeliveryList.as_view(), name='delivery-list'),
    path('events/', EventIngestion.as_view(), name='event-ingestion'),
    path('deliveries/<uuid:delivery_id>/', DeliveryDetail.as_view(), name='delivery-detail'),
    path('deliveries/<uuid:delivery_id>/retry/', DeliveryRetry.as_view(), name='delivery-retry'),
]

from django.contrib import admin
from .models import Event, Subscription, Delivery, DeliveryAttempt


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = ('id', 'owner', 'target_url', 'status', 'failure_count', 'created_at')
    search_fields = ('id', 'owner', 'target_url')
    list_filter = ('status', 'created_at')
    readonly_fields = ('failure_count',)


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ('id', 'event_type', 'created_at')
    search_fields = ('id',)
    list_filter = ('event_type',)
    date_hierarchy = 'created_at'

    def has_change_permission(self, request, obj=None):
        return False


class DeliveryAttemptInline(admin.TabularInline):
    model = DeliveryAttempt
    extra = 0
    can_delete = False
    readonly_fields = ('attempt_number', 'trigger', 'status', 'status_code', 'error_message',
                       'response_time_ms', 'created_at')


@admin.register(Delivery)
class DeliveryAdmin(admin.ModelAdmin):
    list_display = ('id', 'subscription', 'event', 'status', 'attempt_number', 'next_retry_at', 'created_at')
    search_fields = ('id', 'event__id', 'subscription__id')
    list_filter = ('status', 'trigger', 'created_at')
    date_hierarchy = 'created_at'
    inlines = [DeliveryAttemptInline]
    readonly_fields = ('status', 'attempt_number', 'next_retry_at', 'locked_at', 'exhaustion_counted')

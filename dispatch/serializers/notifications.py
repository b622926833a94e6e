from rest_framework import serializers

from dispatch.models import Notification


class DispatcherPushSerializer(serializers.Serializer):
    tripId = serializers.CharField(required=False, allow_blank=True)
    action = serializers.CharField(max_length=32)
    source = serializers.ChoiceField(choices=['booking_app', 'facility_app', 'dispatcher_app'], required=False)
    tripDetails = serializers.DictField(required=False)


class DriverPushSerializer(serializers.Serializer):
    driverId = serializers.IntegerField(min_value=1)
    tripId = serializers.CharField(required=False, allow_blank=True)
    action = serializers.CharField(max_length=32, required=False, default='trip_update')
    title = serializers.CharField(max_length=255, required=False)
    body = serializers.CharField(required=False)
    data = serializers.DictField(required=False)


class FacilityPushSerializer(serializers.Serializer):
    facilityId = serializers.IntegerField(min_value=1)
    userId = serializers.IntegerField(min_value=1, required=False)
    title = serializers.CharField(max_length=255)
    body = serializers.CharField()
    data = serializers.DictField(required=False)


class BookingPushSerializer(serializers.Serializer):
    userId = serializers.IntegerField(min_value=1)
    tripId = serializers.CharField(required=False, allow_blank=True)
    action = serializers.CharField(max_length=32)
    title = serializers.CharField(max_length=255, required=False)
    body = serializers.CharField(required=False)
    data = serializers.DictField(required=False)


class MessageNotificationSerializer(serializers.Serializer):
    conversationId = serializers.IntegerField(min_value=1)
    senderName = serializers.CharField(max_length=255, required=False, allow_blank=True)
    message = serializers.CharField()
    senderRole = serializers.CharField(max_length=16)


class NotificationReadSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(min_value=1), required=False)
    all = serializers.BooleanField(required=False, default=False)


class PushTokenSerializer(serializers.Serializer):
    pushToken = serializers.CharField(max_length=255)
    platform = serializers.ChoiceField(choices=['ios', 'android', 'web'], required=False)
    appType = serializers.ChoiceField(choices=[c for c, _ in Notification.APP_CHOICES], required=False,
                                      default=Notification.APP_DISPATCHER)


class MessageReplySerializer(serializers.Serializer):
    content = serializers.CharField(max_length=5000)

from django.contrib.auth import get_user_model
from rest_framework import serializers

from dispatch.models import Facility, ManagedClient, Trip
from dispatch.services.trips import TRIP_ACTIONS

User = get_user_model()


class TripActionSerializer(serializers.Serializer):
    tripId = serializers.UUIDField()
    action = serializers.ChoiceField(
        choices=TRIP_ACTIONS,
        error_messages={'invalid_choice': f"Invalid action. Valid actions: {', '.join(TRIP_ACTIONS)}"},
    )
    # stored verbatim as the cancellation reason
    reason = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False, max_length=2000)


class TripIdSerializer(serializers.Serializer):
    tripId = serializers.UUIDField()


class AssignDriverSerializer(serializers.Serializer):
    tripId = serializers.UUIDField()
    driverId = serializers.IntegerField(min_value=1)


class TripRespondSerializer(serializers.Serializer):
    token = serializers.CharField()
    action = serializers.ChoiceField(choices=['accept', 'reject'])


class TripListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c for c, _ in Trip.STATUS_CHOICES], required=False)
    source = serializers.ChoiceField(choices=['facility', 'individual'], required=False)


class TripCreateSerializer(serializers.Serializer):
    user = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.filter(role=User.ROLE_CLIENT), required=False, allow_null=True
    )
    facility = serializers.PrimaryKeyRelatedField(queryset=Facility.objects.all(), required=False, allow_null=True)
    managed_client = serializers.PrimaryKeyRelatedField(
        queryset=ManagedClient.objects.all(), required=False, allow_null=True
    )
    pickup_address = serializers.CharField(max_length=500)
    destination_address = serializers.CharField(max_length=500)
    pickup_time = serializers.DateTimeField()
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False, allow_null=True)
    wheelchair_type = serializers.CharField(max_length=32, required=False, allow_blank=True)
    is_emergency = serializers.BooleanField(required=False)
    special_requirements = serializers.CharField(required=False, allow_blank=True)
    payment_method_id = serializers.CharField(max_length=128, required=False, allow_blank=True)


class TripUpdateSerializer(serializers.Serializer):
    pickup_address = serializers.CharField(max_length=500, required=False)
    destination_address = serializers.CharField(max_length=500, required=False)
    pickup_time = serializers.DateTimeField(required=False)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False, allow_null=True)
    wheelchair_type = serializers.CharField(max_length=32, required=False, allow_blank=True)
    is_emergency = serializers.BooleanField(required=False)
    special_requirements = serializers.CharField(required=False, allow_blank=True)
    vehicle = serializers.CharField(max_length=150, required=False, allow_blank=True)

from django.contrib.auth import get_user_model
from rest_framework import serializers

from dispatch.models import Facility

User = get_user_model()


class ProfileSerializer(serializers.Serializer):
    first_name = serializers.CharField(max_length=150)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    phone_number = serializers.CharField(max_length=32, required=False, allow_blank=True)
    address = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    vehicle_model = serializers.CharField(max_length=128, required=False, allow_blank=True)
    vehicle_license = serializers.CharField(max_length=64, required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=[c for c, _ in User.STATUS_CHOICES], required=False)
    metadata = serializers.DictField(required=False)


class UserCreateSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(min_length=8, required=False, trim_whitespace=False, write_only=True)
    role = serializers.ChoiceField(choices=[User.ROLE_DRIVER, User.ROLE_CLIENT, User.ROLE_FACILITY])
    userProfile = ProfileSerializer()
    facilityId = serializers.PrimaryKeyRelatedField(queryset=Facility.objects.all(), required=False, allow_null=True)


class ProfileUpdateSerializer(serializers.Serializer):
    email = serializers.EmailField(required=False)
    first_name = serializers.CharField(max_length=150, required=False)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    phone_number = serializers.CharField(max_length=32, required=False, allow_blank=True)
    address = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    vehicle_model = serializers.CharField(max_length=128, required=False, allow_blank=True)
    vehicle_license = serializers.CharField(max_length=64, required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=[c for c, _ in User.STATUS_CHOICES], required=False)
    is_active = serializers.BooleanField(required=False)


class DeleteClientSerializer(serializers.Serializer):
    clientId = serializers.IntegerField(min_value=1, error_messages={'required': 'Client ID is required'})


class DeleteManagedClientSerializer(serializers.Serializer):
    managedClientId = serializers.IntegerField(
        min_value=1, error_messages={'required': 'Managed client ID is required'}
    )


class DeleteFacilitySerializer(serializers.Serializer):
    facilityId = serializers.IntegerField(min_value=1, error_messages={'required': 'Facility ID is required'})


class DeleteDriverQuerySerializer(serializers.Serializer):
    driverId = serializers.IntegerField(min_value=1, error_messages={'required': 'Driver ID required'})


class FacilitySerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    address = serializers.CharField(required=False, allow_blank=True)
    phone_number = serializers.CharField(max_length=32, required=False, allow_blank=True)
    contact_email = serializers.EmailField(required=False, allow_blank=True)
    billing_email = serializers.EmailField(required=False, allow_blank=True)
    facility_type = serializers.CharField(max_length=64, required=False, allow_blank=True)


class ClientQuerySerializer(serializers.Serializer):
    q = serializers.CharField(max_length=64, required=False)


class DriverQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c for c, _ in User.STATUS_CHOICES], required=False)

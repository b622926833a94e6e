from django.contrib.auth import get_user_model
from rest_framework import serializers

from dispatch.models import Invoice, Trip
from dispatch.services.check_payments import VERIFICATION_ACTIONS, VERIFY_ACTIONS

User = get_user_model()


class InvoiceCreateSerializer(serializers.Serializer):
    user_id = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.all(), error_messages={'required': 'user_id and amount are required'}
    )
    trip_id = serializers.PrimaryKeyRelatedField(queryset=Trip.objects.all(), required=False, allow_null=True)
    amount = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=0,
        error_messages={'required': 'user_id and amount are required'},
    )
    description = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    due_days = serializers.IntegerField(min_value=0, max_value=365, required=False, default=30)


class InvoiceUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=Invoice.EDITABLE_STATUSES, required=False, error_messages={'invalid_choice': 'Invalid status'}
    )
    payment_date = serializers.DateTimeField(required=False)
    payment_method = serializers.CharField(max_length=64, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class InvoiceListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c for c, _ in Invoice.STATUS_CHOICES] + ['all'], required=False)


class FacilityInvoiceReviewSerializer(serializers.Serializer):
    invoice_id = serializers.IntegerField(min_value=1)
    action = serializers.ChoiceField(
        choices=['approve', 'reject'], error_messages={'invalid_choice': 'Invalid action. Must be approve or reject'}
    )
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class VerifyCheckPaymentSerializer(serializers.Serializer):
    invoice_id = serializers.IntegerField(min_value=1)
    action = serializers.ChoiceField(choices=VERIFY_ACTIONS, error_messages={'invalid_choice': 'Invalid action'})


class CheckVerificationSerializer(serializers.Serializer):
    facility_id = serializers.IntegerField(min_value=1)
    month = serializers.RegexField(r'^\d{4}-\d{2}$', max_length=7)
    invoice_id = serializers.IntegerField(min_value=1)
    verification_action = serializers.ChoiceField(
        choices=VERIFICATION_ACTIONS, error_messages={'invalid_choice': 'Invalid verification action'}
    )
    verification_notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)

"""
Database models for the dispatcher backend.

The schema follows the transport company's shared database. Profiles
carry the role column every endpoint checks. Trips carry both the
lifecycle status and the payment bookkeeping written by the approval
flow. Invoices and facility invoices hold individual and monthly facility
billing.
"""
from __future__ import annotations

import uuid
from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone


class Facility(models.Model):
    """An institutional client (hospital, care home) billed monthly."""
    name = models.CharField(max_length=255)
    address = models.TextField(blank=True)
    phone_number = models.CharField(max_length=32, blank=True)
    contact_email = models.EmailField(blank=True)
    billing_email = models.EmailField(blank=True)
    facility_type = models.CharField(max_length=64, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = 'facilities'

    def __str__(self) -> str:
        return self.name


class User(AbstractUser):
    """Profile row for every person using the transport apps.

    Only dispatchers (and admins, for billing) work in this app. Drivers,
    clients and facility staff are managed from here.
    """
    ROLE_DISPATCHER = 'dispatcher'
    ROLE_ADMIN = 'admin'
    ROLE_DRIVER = 'driver'
    ROLE_CLIENT = 'client'
    ROLE_FACILITY = 'facility'
    ROLE_CHOICES = (
        (ROLE_DISPATCHER, 'Dispatcher'),
        (ROLE_ADMIN, 'Administrator'),
        (ROLE_DRIVER, 'Driver'),
        (ROLE_CLIENT, 'Client'),
        (ROLE_FACILITY, 'Facility'),
    )

    # Driver availability
    STATUS_AVAILABLE = 'available'
    STATUS_ON_TRIP = 'on_trip'
    STATUS_OFFLINE = 'offline'
    STATUS_INACTIVE = 'inactive'
    STATUS_CHOICES = (
        (STATUS_AVAILABLE, 'available'),
        (STATUS_ON_TRIP, 'on trip'),
        (STATUS_OFFLINE, 'offline'),
        (STATUS_INACTIVE, 'inactive'),
    )

    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_CLIENT, db_index=True)
    phone_number = models.CharField(max_length=32, blank=True)
    address = models.TextField(blank=True)
    facility = models.ForeignKey(
        Facility, null=True, blank=True, on_delete=models.SET_NULL, related_name='users'
    )
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_AVAILABLE)
    vehicle_model = models.CharField(max_length=128, blank=True)
    vehicle_license = models.CharField(max_length=64, blank=True)
    notes = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    push_notifications_enabled = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.email or self.username

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class ManagedClient(models.Model):
    """A rider registered by a facility rather than self-registered."""
    facility = models.ForeignKey(Facility, on_delete=models.CASCADE, related_name='managed_clients')
    first_name = models.CharField(max_length=150)
    last_name = models.CharField(max_length=150, blank=True)
    email = models.EmailField(blank=True, db_index=True)
    phone_number = models.CharField(max_length=32, blank=True)
    address = models.TextField(blank=True)
    accessibility_needs = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self) -> str:
        return f"{self.full_name} @ {self.facility_id}"


class Trip(models.Model):
    STATUS_PENDING = 'pending'
    STATUS_APPROVED_PENDING_PAYMENT = 'approved_pending_payment'
    STATUS_PAID_IN_PROGRESS = 'paid_in_progress'
    STATUS_UPCOMING = 'upcoming'
    STATUS_AWAITING_DRIVER = 'awaiting_driver_acceptance'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_PAYMENT_FAILED = 'payment_failed'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = (
        (STATUS_PENDING, 'pending'),
        (STATUS_APPROVED_PENDING_PAYMENT, 'approved, pending payment'),
        (STATUS_PAID_IN_PROGRESS, 'paid, in progress'),
        (STATUS_UPCOMING, 'upcoming'),
        (STATUS_AWAITING_DRIVER, 'awaiting driver acceptance'),
        (STATUS_IN_PROGRESS, 'in progress'),
        (STATUS_PAYMENT_FAILED, 'payment failed'),
        (STATUS_COMPLETED, 'completed'),
        (STATUS_CANCELLED, 'cancelled'),
    )
    # Trips still holding a driver or a seat on the schedule
    ACTIVE_STATUSES = (STATUS_PENDING, STATUS_UPCOMING, STATUS_IN_PROGRESS, STATUS_AWAITING_DRIVER)

    PAYMENT_PENDING = 'pending'
    PAYMENT_PAID = 'paid'
    PAYMENT_FAILED = 'failed'
    PAYMENT_NOT_APPLICABLE = 'not_applicable'

    ACCEPTANCE_PENDING = 'pending'
    ACCEPTANCE_ACCEPTED = 'accepted'
    ACCEPTANCE_REJECTED = 'rejected'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='trips')
    managed_client = models.ForeignKey(
        ManagedClient, null=True, blank=True, on_delete=models.SET_NULL, related_name='trips'
    )
    facility = models.ForeignKey(Facility, null=True, blank=True, on_delete=models.SET_NULL, related_name='trips')
    driver = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='assigned_trips'
    )

    pickup_address = models.TextField()
    destination_address = models.TextField()
    pickup_time = models.DateTimeField(db_index=True)
    status = models.CharField(max_length=32, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    wheelchair_type = models.CharField(max_length=32, blank=True)
    is_emergency = models.BooleanField(default=False)
    special_requirements = models.TextField(blank=True)
    driver_name = models.CharField(max_length=150, blank=True)
    vehicle = models.CharField(max_length=150, blank=True)

    approval_notes = models.TextField(blank=True)
    cancellation_reason = models.TextField(blank=True)
    completion_notes = models.TextField(blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    # Payment bookkeeping written by the approval flow
    payment_method_id = models.CharField(max_length=128, blank=True)
    payment_status = models.CharField(max_length=32, blank=True)
    payment_intent_id = models.CharField(max_length=128, blank=True)
    payment_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    charged_at = models.DateTimeField(null=True, blank=True)
    payment_error = models.TextField(blank=True)
    payment_reminder_sent_at = models.DateTimeField(null=True, blank=True)
    payment_reminder_count = models.PositiveIntegerField(default=0)

    # Driver response to an assignment
    driver_acceptance_status = models.CharField(max_length=16, blank=True)
    driver_response = models.CharField(max_length=16, blank=True)
    driver_response_time = models.DateTimeField(null=True, blank=True)
    rejected_by_driver = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='declined_trips'
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['status', 'pickup_time'], name='trip_status_pickup_idx'),
            models.Index(fields=['driver', 'status'], name='trip_driver_status_idx'),
        ]

    @property
    def is_facility_trip(self) -> bool:
        return self.facility_id is not None

    def rider_name(self) -> str:
        if self.managed_client_id:
            return self.managed_client.full_name
        if self.user_id:
            return self.user.full_name
        return 'Unknown client'

    def __str__(self) -> str:
        return f"trip {self.id} ({self.status})"


class Invoice(models.Model):
    STATUS_PENDING = 'pending'
    STATUS_PAID = 'paid'
    STATUS_CANCELLED = 'cancelled'
    STATUS_OVERDUE = 'overdue'
    STATUS_PENDING_APPROVAL = 'pending_approval'
    STATUS_APPROVED = 'approved'
    STATUS_SENT = 'sent'
    STATUS_CHOICES = (
        (STATUS_PENDING, 'pending'),
        (STATUS_PAID, 'paid'),
        (STATUS_CANCELLED, 'cancelled'),
        (STATUS_OVERDUE, 'overdue'),
        (STATUS_PENDING_APPROVAL, 'pending approval'),
        (STATUS_APPROVED, 'approved'),
        (STATUS_SENT, 'sent'),
    )
    # Statuses a dispatcher may set directly
    EDITABLE_STATUSES = (STATUS_PENDING, STATUS_PAID, STATUS_CANCELLED, STATUS_OVERDUE)

    invoice_number = models.CharField(max_length=32, unique=True)
    user = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='invoices')
    facility = models.ForeignKey(
        Facility, null=True, blank=True, on_delete=models.SET_NULL, related_name='invoices'
    )
    trip = models.ForeignKey(Trip, null=True, blank=True, on_delete=models.SET_NULL, related_name='invoices')
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    status = models.CharField(max_length=24, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    payment_status = models.CharField(max_length=24, blank=True)
    issue_date = models.DateTimeField(default=timezone.now)
    due_date = models.DateTimeField(null=True, blank=True)
    description = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    payment_date = models.DateTimeField(null=True, blank=True)
    payment_method = models.CharField(max_length=64, blank=True)
    approved_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='approved_invoices'
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    dispatcher_notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.invoice_number


class FacilityInvoice(models.Model):
    """Monthly roll-up invoice for a facility, usually settled by check."""
    UNPAID = 'UNPAID'
    CHECK_WILL_MAIL = 'CHECK PAYMENT - WILL MAIL'
    CHECK_ALREADY_SENT = 'CHECK PAYMENT - ALREADY SENT'
    CHECK_IN_TRANSIT = 'CHECK PAYMENT - IN TRANSIT'
    CHECK_BEING_VERIFIED = 'CHECK PAYMENT - BEING VERIFIED'
    CHECK_HAS_ISSUES = 'CHECK PAYMENT - HAS ISSUES'
    CHECK_REPLACEMENT_REQUESTED = 'CHECK PAYMENT - REPLACEMENT REQUESTED'
    CHECK_NOT_RECEIVED = 'CHECK PAYMENT - NOT RECEIVED'
    CHECK_RECEIVED = 'PAID WITH CHECK (BEING VERIFIED)'
    CHECK_VERIFIED = 'PAID WITH CHECK - VERIFIED'

    facility = models.ForeignKey(Facility, on_delete=models.CASCADE, related_name='monthly_invoices')
    month = models.CharField(max_length=7, help_text="Billing month as YYYY-MM")
    invoice_number = models.CharField(max_length=32, blank=True)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    payment_status = models.CharField(max_length=64, default=UNPAID)
    payment_notes = models.TextField(blank=True)
    payment_date = models.DateTimeField(null=True, blank=True)
    verified_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    verified_at = models.DateTimeField(null=True, blank=True)
    verification_date = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = [('facility', 'month')]

    def __str__(self) -> str:
        return f"{self.facility_id} {self.month} ({self.payment_status})"


class FacilityInvoicePayment(models.Model):
    """Payment history row for a facility's monthly invoice."""
    STATUS_PENDING_VERIFICATION = 'pending_verification'
    STATUS_COMPLETED = 'completed'
    STATUS_HAS_ISSUES = 'has_issues'

    facility = models.ForeignKey(Facility, on_delete=models.CASCADE, related_name='invoice_payments')
    month = models.CharField(max_length=7)
    amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    payment_method = models.CharField(max_length=32, default='check')
    status = models.CharField(max_length=32, default=STATUS_PENDING_VERIFICATION)
    payment_note = models.TextField(blank=True)
    payment_date = models.DateTimeField(default=timezone.now)
    verification_action = models.CharField(max_length=32, blank=True)
    verification_notes = models.TextField(blank=True)
    verified_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    verified_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['facility', 'month', 'payment_method'], name='fac_payment_month_idx')]


class Conversation(models.Model):
    """Message thread between a facility and the dispatch office."""
    facility = models.ForeignKey(Facility, on_delete=models.CASCADE, related_name='conversations')
    subject = models.CharField(max_length=255, blank=True)
    last_message_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"conversation f={self.facility_id} {self.subject}"


class Message(models.Model):
    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name='messages')
    sender = models.ForeignKey(User, null=True, on_delete=models.SET_NULL, related_name='sent_messages')
    sender_role = models.CharField(max_length=16)
    content = models.TextField()
    read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['conversation', 'created_at'], name='message_conv_created_idx')]


class Notification(models.Model):
    """In-app notification row; one per recipient."""
    APP_DISPATCHER = 'dispatcher'
    APP_DRIVER = 'driver'
    APP_FACILITY = 'facility'
    APP_BOOKING = 'booking'
    APP_CHOICES = (
        (APP_DISPATCHER, 'dispatcher'),
        (APP_DRIVER, 'driver'),
        (APP_FACILITY, 'facility'),
        (APP_BOOKING, 'booking'),
    )

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    app_type = models.CharField(max_length=16, choices=APP_CHOICES)
    notification_type = models.CharField(max_length=32)
    title = models.CharField(max_length=255)
    body = models.TextField()
    data = models.JSONField(default=dict, blank=True)
    read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['user', 'app_type', 'read'], name='notif_user_app_read_idx')]


class PushToken(models.Model):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='push_tokens')
    app_type = models.CharField(max_length=16, choices=Notification.APP_CHOICES)
    push_token = models.CharField(max_length=255)
    platform = models.CharField(max_length=16, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = [('user', 'app_type')]


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_created_idx'),
        ]

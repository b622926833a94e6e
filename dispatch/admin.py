"""
Django admin registrations for the dispatch models.

Superusers can inspect trips, accounts and billing rows at ``/admin/``
when a record needs a manual fix.
"""

from django.contrib import admin

from .models import (
    AuditEvent,
    Conversation,
    Facility,
    FacilityInvoice,
    FacilityInvoicePayment,
    Invoice,
    ManagedClient,
    Message,
    Notification,
    PushToken,
    Trip,
    User,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'email', 'role', 'status', 'facility', 'is_active')
    list_filter = ('role', 'status', 'is_active')
    search_fields = ('username', 'email', 'first_name', 'last_name')


@admin.register(Facility)
class FacilityAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'contact_email', 'phone_number', 'created_at')
    search_fields = ('name', 'contact_email')


@admin.register(ManagedClient)
class ManagedClientAdmin(admin.ModelAdmin):
    list_display = ('id', 'first_name', 'last_name', 'email', 'facility')
    search_fields = ('first_name', 'last_name', 'email')


@admin.register(Trip)
class TripAdmin(admin.ModelAdmin):
    list_display = ('id', 'status', 'pickup_time', 'user', 'facility', 'driver', 'payment_status')
    list_filter = ('status', 'payment_status', 'is_emergency')
    search_fields = ('id', 'pickup_address', 'destination_address', 'user__email')
    raw_id_fields = ('user', 'managed_client', 'facility', 'driver', 'rejected_by_driver')


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ('invoice_number', 'user', 'facility', 'amount', 'status', 'due_date')
    list_filter = ('status',)
    search_fields = ('invoice_number', 'user__email')


@admin.register(FacilityInvoice)
class FacilityInvoiceAdmin(admin.ModelAdmin):
    list_display = ('facility', 'month', 'total_amount', 'payment_status', 'verified_at')
    list_filter = ('payment_status',)
    search_fields = ('facility__name', 'invoice_number', 'month')


@admin.register(FacilityInvoicePayment)
class FacilityInvoicePaymentAdmin(admin.ModelAdmin):
    list_display = ('facility', 'month', 'amount', 'payment_method', 'status', 'verification_action', 'created_at')
    list_filter = ('status', 'payment_method')


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ('id', 'facility', 'subject', 'last_message_at')
    search_fields = ('facility__name', 'subject')


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ('conversation', 'sender', 'sender_role', 'read', 'created_at')
    list_filter = ('sender_role', 'read')


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('user', 'app_type', 'notification_type', 'title', 'read', 'created_at')
    list_filter = ('app_type', 'notification_type', 'read')


@admin.register(PushToken)
class PushTokenAdmin(admin.ModelAdmin):
    list_display = ('user', 'app_type', 'platform', 'updated_at')
    list_filter = ('app_type', 'platform')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'object_type', 'object_id', 'user', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('object_id',)

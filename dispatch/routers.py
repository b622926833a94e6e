"""
URL mappings for the dispatcher API.

Paths mirror the ones the dispatcher, driver, booking and facility apps
already call. Trailing slashes are omitted.
"""
from django.urls import path

from .auth_views import jwt_logout_view, jwt_refresh_view, login_view, me_view, signup_view
from .views import accounts, billing, dashboard, health, messages, notifications, trips

urlpatterns = [
    path('healthz', health.healthz, name='healthz'),
    # Authentication
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/signup', signup_view, name='signup_view'),
    path('api/auth/refresh', jwt_refresh_view, name='jwt_refresh_view'),
    path('api/auth/logout', jwt_logout_view, name='jwt_logout_view'),
    path('api/auth/me', me_view, name='me_view'),
    # Dashboard
    path('api/dashboard', dashboard.dashboard, name='dashboard'),
    # Trips
    path('api/trips', trips.trips, name='trips'),
    path('api/trips/all', trips.all_trips, name='trips_all'),
    path('api/trips/actions', trips.trip_actions, name='trip_actions'),
    path('api/trips/assign-driver', trips.assign_driver, name='trip_assign_driver'),
    path('api/trips/respond', trips.trip_respond, name='trip_respond'),
    path('api/trips/send-reminder', trips.send_reminder, name='trip_send_reminder'),
    path('api/trips/<str:trip_id>', trips.trip_detail, name='trip_detail'),
    path('api/dispatcher/assign-trip', trips.dispatcher_assign_trip, name='dispatcher_assign_trip'),
    path('api/dispatcher/complete-trip', trips.dispatcher_complete_trip, name='dispatcher_complete_trip'),
    # Drivers
    path('api/drivers', accounts.list_drivers, name='drivers'),
    path('api/drivers/fix-status', accounts.fix_status, name='drivers_fix_status'),
    path('api/drivers/<int:driver_id>', accounts.driver_detail, name='driver_detail'),
    path('api/dispatcher/delete-driver', accounts.delete_driver, name='delete_driver'),
    # Users / clients / facilities
    path('api/users', accounts.create_user, name='create_user'),
    path('api/clients', accounts.list_clients, name='clients'),
    path('api/clients/<int:client_id>', accounts.client_detail, name='client_detail'),
    path('api/facilities', accounts.facilities, name='facilities'),
    path('api/facilities/<int:facility_id>', accounts.facility_detail, name='facility_detail'),
    path('api/admin/delete-client-simple', accounts.delete_client, name='delete_client'),
    path('api/admin/delete-managed-client', accounts.delete_managed_client, name='delete_managed_client'),
    path('api/admin/delete-facility-simple', accounts.delete_facility, name='delete_facility'),
    # Billing
    path('api/invoices', billing.invoice_list, name='invoices'),
    path('api/invoices/<int:invoice_id>', billing.invoice_detail, name='invoice_detail'),
    path('api/facility-invoices', billing.facility_invoices, name='facility_invoices'),
    path('api/dispatcher/verify-check-payment', billing.verify_check_payment, name='verify_check_payment'),
    path('api/facility/check-payment/verify', billing.check_payment_verify, name='check_payment_verify'),
    # Push notifications (sibling apps)
    path('api/notifications/send-dispatcher-push', notifications.send_dispatcher_push, name='send_dispatcher_push'),
    path('api/notifications/send-onesignal-push', notifications.send_dispatcher_push, name='send_onesignal_push'),
    path('api/notifications/send-driver-push', notifications.send_driver_push, name='send_driver_push'),
    path('api/notifications/send-facility-push', notifications.send_facility_push, name='send_facility_push'),
    path('api/notifications/send-booking-push', notifications.send_booking_push, name='send_booking_push'),
    path('api/notifications/send-message-notification', notifications.send_message_notification,
         name='send_message_notification'),
    # Dispatcher notifications
    path('api/notifications', notifications.list_notifications, name='notifications'),
    path('api/notifications/read', notifications.mark_notifications_read, name='notifications_read'),
    path('api/notifications/push-token', notifications.register_push_token, name='push_token'),
    # Messaging
    path('api/messages/conversations', messages.conversations, name='conversations'),
    path('api/messages/conversations/<int:conversation_id>', messages.conversation_detail,
         name='conversation_detail'),
]

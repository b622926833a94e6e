"""
Trip lifecycle for dispatchers.

Every transition checks the current status and writes the new one inside a
single transaction holding a row lock on the trip, so two dispatchers
acting on the same trip cannot both pass the check. Work that leaves the
database (the payment charge, pushes, email) happens after that
transaction commits.
"""
import logging
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Exists, F, OuterRef
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from dispatch.exceptions import InvalidStatusTransition
from dispatch.models import Trip
from dispatch.services.audit import log_action
from dispatch.services.assignment_tokens import read_assignment_token
from dispatch.services.email import send_driver_assignment_email
from dispatch.services import notifications
from dispatch.services.payments import charge_trip_payment, send_payment_reminder
from dispatch.services.realtime import broadcast_trip_event, invalidate_dashboard

User = get_user_model()
logger = logging.getLogger('dispatch.trips')

TRIP_ACTIONS = ('approve', 'reject', 'complete')
COMPLETABLE_STATUSES = (Trip.STATUS_PAID_IN_PROGRESS, Trip.STATUS_UPCOMING)
FINAL_STATUSES = (Trip.STATUS_COMPLETED, Trip.STATUS_CANCELLED)
ASSIGNABLE_STATUSES = (
    Trip.STATUS_PENDING, Trip.STATUS_UPCOMING, Trip.STATUS_APPROVED_PENDING_PAYMENT, Trip.STATUS_PAID_IN_PROGRESS,
)
DRIVER_COMPLETABLE_STATUSES = (Trip.STATUS_IN_PROGRESS, Trip.STATUS_UPCOMING, Trip.STATUS_AWAITING_DRIVER)
RESPONDABLE_STATUSES = (
    Trip.STATUS_UPCOMING, Trip.STATUS_PAID_IN_PROGRESS, Trip.STATUS_AWAITING_DRIVER, Trip.STATUS_IN_PROGRESS,
)
# Trips that keep a driver busy
DRIVER_BUSY_STATUSES = (
    Trip.STATUS_UPCOMING, Trip.STATUS_PAID_IN_PROGRESS, Trip.STATUS_AWAITING_DRIVER, Trip.STATUS_IN_PROGRESS,
)
CONFLICT_STATUSES = (Trip.STATUS_PAID_IN_PROGRESS, Trip.STATUS_AWAITING_DRIVER, Trip.STATUS_IN_PROGRESS)
CONFLICT_WINDOW = timedelta(hours=4)
ALL_TRIPS_LIMIT = 200


# ---------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------
def _iso(dt) -> Optional[str]:
    return dt.isoformat() if dt else None


def _money(value) -> Optional[str]:
    return str(value) if value is not None else None


def serialize_trip(t: Trip, *, expand: bool = False) -> dict:
    data = {
        'id': str(t.id),
        'status': t.status,
        'user_id': t.user_id,
        'managed_client_id': t.managed_client_id,
        'facility_id': t.facility_id,
        'driver_id': t.driver_id,
        'pickup_address': t.pickup_address,
        'destination_address': t.destination_address,
        'pickup_time': _iso(t.pickup_time),
        'price': _money(t.price),
        'wheelchair_type': t.wheelchair_type,
        'is_emergency': t.is_emergency,
        'special_requirements': t.special_requirements,
        'driver_name': t.driver_name,
        'vehicle': t.vehicle,
        'approval_notes': t.approval_notes,
        'cancellation_reason': t.cancellation_reason,
        'completion_notes': t.completion_notes,
        'completed_at': _iso(t.completed_at),
        'payment_status': t.payment_status,
        'payment_intent_id': t.payment_intent_id,
        'payment_amount': _money(t.payment_amount),
        'charged_at': _iso(t.charged_at),
        'payment_error': t.payment_error,
        'payment_reminder_sent_at': _iso(t.payment_reminder_sent_at),
        'payment_reminder_count': t.payment_reminder_count,
        'driver_acceptance_status': t.driver_acceptance_status,
        'driver_response': t.driver_response,
        'driver_response_time': _iso(t.driver_response_time),
        'rejected_by_driver_id': t.rejected_by_driver_id,
        'created_at': _iso(t.created_at),
        'updated_at': _iso(t.updated_at),
    }
    if expand:
        data['user'] = (
            {'id': t.user.id, 'full_name': t.user.full_name, 'email': t.user.email, 'phone_number': t.user.phone_number}
            if t.user_id else None
        )
        data['facility'] = (
            {'id': t.facility.id, 'name': t.facility.name, 'contact_email': t.facility.contact_email,
             'phone_number': t.facility.phone_number}
            if t.facility_id else None
        )
        data['managed_client'] = (
            {'first_name': t.managed_client.first_name, 'last_name': t.managed_client.last_name,
             'email': t.managed_client.email, 'phone_number': t.managed_client.phone_number}
            if t.managed_client_id else None
        )
        data['driver'] = (
            {'id': t.driver.id, 'full_name': t.driver.full_name, 'phone_number': t.driver.phone_number}
            if t.driver_id else None
        )
    return data


# ---------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------
def get_trip(trip_id, *, lock: bool = False) -> Trip:
    if lock:
        qs = Trip.objects.select_for_update()
    else:
        qs = Trip.objects.select_related('user', 'facility', 'managed_client', 'driver')
    try:
        return qs.get(id=trip_id)
    except (Trip.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFound('Trip not found')


def get_driver(driver_id) -> User:
    try:
        return User.objects.get(id=driver_id, role=User.ROLE_DRIVER)
    except (User.DoesNotExist, ValueError):
        raise NotFound('Driver not found')


def needs_charge(trip: Trip) -> bool:
    """Individual bookings with a saved card are charged on approval; facilities are billed monthly."""
    return bool(trip.user_id and not trip.is_facility_trip and trip.payment_method_id)


def _stamp() -> str:
    return f"{timezone.localtime():%Y-%m-%d %H:%M}"


def _after_commit(func, *args, **kwargs) -> None:
    transaction.on_commit(lambda: func(*args, **kwargs), robust=True)


def _notify_status_change(trip: Trip, dispatcher_action: str, booking_action: Optional[str] = None) -> None:
    _after_commit(notifications.notify_dispatchers, dispatcher_action, trip_id=trip.id,
                  source='facility_app' if trip.is_facility_trip else 'booking_app',
                  details={'pickup_address': trip.pickup_address})
    if booking_action and trip.user_id and not trip.is_facility_trip:
        _after_commit(notifications.notify_booking_user, trip.user, booking_action, trip_id=trip.id)


# ---------------------------------------------------------------------
# Approve / reject / complete
# ---------------------------------------------------------------------
def approve_trip(trip_id, dispatcher) -> dict:
    """Approve a pending trip, then charge it once if it is an individual booking with a card.

    The status check and the first write commit before the charge is sent.
    A failed or timed out charge still leaves the trip approved (``upcoming``)
    with ``payment_status=pending`` so billing can follow up by hand.
    """
    with transaction.atomic():
        trip = get_trip(trip_id, lock=True)
        if trip.status != Trip.STATUS_PENDING:
            raise InvalidStatusTransition(
                f"Cannot approve trip in status: {trip.status}. Trip must be in 'pending' status."
            )
        trip.status = Trip.STATUS_APPROVED_PENDING_PAYMENT
        trip.driver_name = trip.driver_name or settings.DEFAULT_DRIVER_NAME
        trip.vehicle = trip.vehicle or settings.DEFAULT_VEHICLE
        trip.approval_notes = f"Approved by dispatcher at {_stamp()}"
        trip.save(update_fields=['status', 'driver_name', 'vehicle', 'approval_notes', 'updated_at'])
        log_action(user=dispatcher, action='trip_approve', object_type='trip', object_id=trip.id,
                   detail={'from': Trip.STATUS_PENDING})

    now = timezone.now()
    response = {'success': True}
    if not needs_charge(trip):
        changes = {'status': Trip.STATUS_UPCOMING, 'payment_status': Trip.PAYMENT_NOT_APPLICABLE}
        response['payment'] = {
            'charged': False,
            'status': Trip.PAYMENT_NOT_APPLICABLE,
            'reason': 'facility_billing' if trip.is_facility_trip else 'no_payment_method',
        }
        response['message'] = 'Trip approved successfully'
    else:
        result = charge_trip_payment(trip.id)
        if result.ok:
            amount = result.amount if result.amount is not None else trip.price
            changes = {
                'status': Trip.STATUS_PAID_IN_PROGRESS,
                'payment_status': Trip.PAYMENT_PAID,
                'payment_intent_id': result.payment_intent_id,
                'charged_at': now,
                'payment_amount': amount,
                'payment_error': '',
            }
            response['payment'] = {
                'charged': True,
                'status': Trip.PAYMENT_PAID,
                'amount': _money(amount),
                'paymentIntentId': result.payment_intent_id,
            }
            response['message'] = 'Trip approved and payment processed successfully'
        else:
            changes = {
                'status': Trip.STATUS_UPCOMING,
                'payment_status': Trip.PAYMENT_PENDING,
                'payment_error': f"Automatic payment failed: {result.error}. Manual payment required.",
                'approval_notes': f"Payment system unavailable ({result.error_type}) - approved for manual payment processing",
            }
            response['payment'] = {
                'charged': False,
                'status': Trip.PAYMENT_PENDING,
                'error': result.error,
                'fallback': True,
                'errorType': result.error_type,
            }
            response['warning'] = 'Trip approved, but the payment could not be processed. Payment will need to be collected manually.'
            response['message'] = f"Trip approved - manual payment required due to {result.error_type}"

    # Only finish the approval if nobody changed the trip while the charge was in flight
    with transaction.atomic():
        updated = Trip.objects.filter(id=trip.id, status=Trip.STATUS_APPROVED_PENDING_PAYMENT).update(
            updated_at=now, **changes
        )
        trip.refresh_from_db()
        if not updated:
            logger.warning('trip %s left approved_pending_payment during approval (now %s)', trip.id, trip.status)
            if response['payment']['charged']:
                response['warning'] = (
                    f"Trip changed to {trip.status} while the payment was processing. "
                    "The charge went through; review it for a refund."
                )
                response['message'] = f"Payment processed, but trip is now {trip.status}"
        log_action(user=dispatcher, action='trip_payment', object_type='trip', object_id=trip.id,
                   detail={'payment': response['payment'], 'status': trip.status})
        broadcast_trip_event(trip, 'approved')
        _notify_status_change(trip, 'approved', 'approved')

    logger.info('trip %s approved by %s; payment %s', trip.id, dispatcher.id, response['payment']['status'])
    response['trip'] = serialize_trip(trip)
    return response


def reject_trip(trip_id, dispatcher, reason: Optional[str] = None) -> dict:
    with transaction.atomic():
        trip = get_trip(trip_id, lock=True)
        if trip.status in FINAL_STATUSES:
            raise InvalidStatusTransition(f"Cannot reject trip in status: {trip.status}")
        previous = trip.status
        trip.status = Trip.STATUS_CANCELLED
        trip.cancellation_reason = reason or 'Rejected by dispatcher'
        trip.save(update_fields=['status', 'cancellation_reason', 'updated_at'])
        log_action(user=dispatcher, action='trip_reject', object_type='trip', object_id=trip.id,
                   detail={'from': previous, 'reason': trip.cancellation_reason})
        broadcast_trip_event(trip, 'cancelled')
        _notify_status_change(trip, 'cancelled', 'rejected' if previous == Trip.STATUS_PENDING else 'cancelled')
        if trip.driver_id:
            _after_commit(notifications.notify_driver, trip.driver, 'trip_cancelled', trip_id=trip.id)
    return {'success': True, 'trip': serialize_trip(trip), 'message': 'Trip rejected successfully'}


def complete_trip(trip_id, dispatcher) -> dict:
    with transaction.atomic():
        trip = get_trip(trip_id, lock=True)
        if trip.status not in COMPLETABLE_STATUSES:
            raise InvalidStatusTransition(
                f"Cannot complete trip in status: {trip.status}. Trip must be in one of: {', '.join(COMPLETABLE_STATUSES)}"
            )
        previous = trip.status
        trip.status = Trip.STATUS_COMPLETED
        trip.completed_at = timezone.now()
        trip.completion_notes = f"Completed by dispatcher at {_stamp()}"
        trip.save(update_fields=['status', 'completed_at', 'completion_notes', 'updated_at'])
        log_action(user=dispatcher, action='trip_complete', object_type='trip', object_id=trip.id,
                   detail={'from': previous})
        broadcast_trip_event(trip, 'completed')
        _notify_status_change(trip, 'completed', 'completed')
    return {'success': True, 'trip': serialize_trip(trip), 'message': 'Trip completed successfully'}


def perform_trip_action(trip_id, action: str, dispatcher, *, reason: Optional[str] = None) -> dict:
    if action == 'approve':
        return approve_trip(trip_id, dispatcher)
    if action == 'reject':
        return reject_trip(trip_id, dispatcher, reason)
    if action == 'complete':
        return complete_trip(trip_id, dispatcher)
    raise ValidationError({'action': [f"Invalid action. Valid actions: {', '.join(TRIP_ACTIONS)}"]})


# ---------------------------------------------------------------------
# Driver assignment
# ---------------------------------------------------------------------
def _check_assignable(trip: Trip) -> None:
    if trip.driver_id:
        raise ValidationError('Trip is already assigned to another driver')
    if trip.status not in ASSIGNABLE_STATUSES:
        raise InvalidStatusTransition('Trip status does not allow assignment')


def assign_driver(trip_id, driver_id, dispatcher) -> dict:
    """Attach a driver and ask them to accept; the trip status does not change."""
    with transaction.atomic():
        trip = get_trip(trip_id, lock=True)
        _check_assignable(trip)
        driver = get_driver(driver_id)
        trip.driver = driver
        trip.driver_name = driver.full_name
        trip.driver_acceptance_status = Trip.ACCEPTANCE_PENDING
        trip.save(update_fields=['driver', 'driver_name', 'driver_acceptance_status', 'updated_at'])
        log_action(user=dispatcher, action='trip_assign_driver', object_type='trip', object_id=trip.id,
                   detail={'driverId': driver.id})
        broadcast_trip_event(trip, 'driver_assigned')
        _notify_status_change(trip, 'driver_assigned', 'assigned')
        _after_commit(notifications.notify_driver, driver, 'assigned', trip_id=trip.id,
                      data={'pickupAddress': trip.pickup_address})
        if trip.facility_id:
            _after_commit(notifications.notify_facility, trip.facility, title='Driver Assigned',
                          body=f"{driver.full_name} has been assigned to a trip for {trip.rider_name()}",
                          data={'type': 'trip', 'tripId': str(trip.id), 'action': 'driver_assigned'})
    return {'success': True, 'trip': serialize_trip(trip), 'message': 'Driver assigned successfully'}


def dispatcher_assign_trip(trip_id, driver_id, dispatcher) -> dict:
    """Assign a driver after a schedule conflict check and email them accept/decline links."""
    with transaction.atomic():
        trip = get_trip(trip_id, lock=True)
        _check_assignable(trip)
        driver = get_driver(driver_id)
        conflicts = Trip.objects.filter(
            driver=driver,
            status__in=CONFLICT_STATUSES,
            pickup_time__gte=trip.pickup_time,
            pickup_time__lte=trip.pickup_time + CONFLICT_WINDOW,
        ).exclude(id=trip.id)
        if conflicts.exists():
            raise ValidationError('Driver has conflicting trips at this time')
        trip.driver = driver
        trip.driver_name = driver.full_name
        trip.driver_acceptance_status = Trip.ACCEPTANCE_PENDING
        if trip.status in (Trip.STATUS_PENDING, Trip.STATUS_UPCOMING):
            trip.status = Trip.STATUS_AWAITING_DRIVER
        trip.save(update_fields=['driver', 'driver_name', 'driver_acceptance_status', 'status', 'updated_at'])
        driver.status = User.STATUS_ON_TRIP
        driver.save(update_fields=['status', 'updated_at'])
        log_action(user=dispatcher, action='trip_assign_driver', object_type='trip', object_id=trip.id,
                   detail={'driverId': driver.id, 'status': trip.status})
        broadcast_trip_event(trip, 'driver_assigned')
        _after_commit(send_driver_assignment_email, driver, trip)
        _after_commit(notifications.notify_driver, driver, 'assigned', trip_id=trip.id,
                      data={'pickupAddress': trip.pickup_address})
    return {
        'success': True,
        'message': 'Trip successfully assigned. The driver will be notified by email.',
        'data': {'tripId': str(trip.id), 'driverId': driver.id, 'status': trip.status},
        'trip': serialize_trip(trip),
    }


def driver_respond(token: str, action: str) -> dict:
    """Accept or decline an assignment through the signed link emailed to the driver."""
    if action not in ('accept', 'reject'):
        raise ValidationError({'action': ['Action must be accept or reject']})
    claims = read_assignment_token(token)
    with transaction.atomic():
        trip = get_trip(claims['tripId'], lock=True)
        if str(trip.driver_id) != str(claims['driverId']):
            raise PermissionDenied('This trip is no longer assigned to you')
        if trip.status not in RESPONDABLE_STATUSES:
            raise InvalidStatusTransition(f"Cannot respond to trip in status: {trip.status}")
        driver = User.objects.select_for_update().get(id=trip.driver_id)
        trip.driver_response = 'accepted' if action == 'accept' else 'rejected'
        trip.driver_response_time = timezone.now()
        if action == 'accept':
            trip.status = Trip.STATUS_IN_PROGRESS
            trip.driver_acceptance_status = Trip.ACCEPTANCE_ACCEPTED
            driver.status = User.STATUS_ON_TRIP
        else:
            trip.status = Trip.STATUS_UPCOMING
            trip.driver_acceptance_status = Trip.ACCEPTANCE_REJECTED
            trip.rejected_by_driver = driver
            trip.driver = None
            trip.driver_name = ''
            driver.status = User.STATUS_AVAILABLE
        trip.save(update_fields=['status', 'driver', 'driver_name', 'driver_acceptance_status', 'driver_response',
                                 'driver_response_time', 'rejected_by_driver', 'updated_at'])
        driver.save(update_fields=['status', 'updated_at'])
        log_action(user=driver, action=f'trip_driver_{trip.driver_response}', object_type='trip', object_id=trip.id)
        broadcast_trip_event(trip, f'driver_{trip.driver_response}')
        _notify_status_change(trip, 'updated', 'in_progress' if action == 'accept' else None)
    message = 'Trip accepted' if action == 'accept' else 'Trip declined; dispatch will reassign it'
    return {'success': True, 'message': message, 'trip': serialize_trip(trip)}


def dispatcher_complete_trip(trip_id, dispatcher) -> dict:
    """Close out a trip on the driver's behalf and free the driver."""
    with transaction.atomic():
        trip = get_trip(trip_id, lock=True)
        if trip.status not in DRIVER_COMPLETABLE_STATUSES:
            raise InvalidStatusTransition(
                f"Cannot complete trip in status: {trip.status}. Trip must be in one of: {', '.join(DRIVER_COMPLETABLE_STATUSES)}"
            )
        previous = trip.status
        trip.status = Trip.STATUS_COMPLETED
        trip.completed_at = timezone.now()
        trip.completion_notes = f"Completed by dispatcher at {_stamp()}"
        trip.save(update_fields=['status', 'completed_at', 'completion_notes', 'updated_at'])
        if trip.driver_id:
            User.objects.filter(id=trip.driver_id).update(status=User.STATUS_AVAILABLE, updated_at=timezone.now())
        log_action(user=dispatcher, action='trip_complete', object_type='trip', object_id=trip.id,
                   detail={'from': previous, 'driverId': trip.driver_id})
        broadcast_trip_event(trip, 'completed')
        _notify_status_change(trip, 'completed', 'completed')
    return {'success': True, 'trip': serialize_trip(trip), 'message': 'Trip completed successfully'}


def fix_driver_statuses(dispatcher) -> list[dict]:
    """Reset drivers stuck in ``on_trip`` with no busy trips back to ``available``."""
    busy = Trip.objects.filter(driver=OuterRef('pk'), status__in=DRIVER_BUSY_STATUSES)
    stale = list(
        User.objects.filter(role=User.ROLE_DRIVER, status=User.STATUS_ON_TRIP)
        .annotate(busy=Exists(busy)).filter(busy=False)
    )
    if stale:
        User.objects.filter(id__in=[d.id for d in stale]).update(status=User.STATUS_AVAILABLE, updated_at=timezone.now())
        invalidate_dashboard()
        log_action(user=dispatcher, action='drivers_fix_status', object_type='user',
                   detail={'driverIds': [d.id for d in stale]})
    return [{'id': d.id, 'name': d.full_name} for d in stale]


# ---------------------------------------------------------------------
# Payment reminders
# ---------------------------------------------------------------------
def owes_payment(trip: Trip) -> bool:
    if trip.status == Trip.STATUS_PAYMENT_FAILED:
        return True
    return trip.payment_status in (Trip.PAYMENT_FAILED, Trip.PAYMENT_PENDING) and bool(trip.payment_error)


def send_reminder(trip_id, dispatcher) -> dict:
    trip = get_trip(trip_id)
    if not owes_payment(trip):
        raise InvalidStatusTransition('Payment reminders can only be sent for trips with a failed or pending payment')
    if not trip.user_id or not trip.user.email:
        raise ValidationError('Trip has no client email to send the reminder to')
    amount = trip.payment_amount if trip.payment_amount is not None else trip.price
    send_payment_reminder(trip.id, user_email=trip.user.email, amount=amount)
    now = timezone.now()
    Trip.objects.filter(id=trip.id).update(
        payment_reminder_sent_at=now, payment_reminder_count=F('payment_reminder_count') + 1, updated_at=now
    )
    trip.refresh_from_db()
    log_action(user=dispatcher, action='trip_payment_reminder', object_type='trip', object_id=trip.id,
               detail={'count': trip.payment_reminder_count})
    return {
        'success': True,
        'message': f'Payment reminder sent to {trip.user.email}',
        'reminderCount': trip.payment_reminder_count,
        'trip': serialize_trip(trip),
    }


# ---------------------------------------------------------------------
# Listing / CRUD
# ---------------------------------------------------------------------
def list_all_trips(*, status: Optional[str] = None, source: Optional[str] = None) -> dict:
    qs = Trip.objects.select_related('user', 'facility', 'managed_client', 'driver')
    if status:
        qs = qs.filter(status=status)
    if source == 'facility':
        qs = qs.filter(facility__isnull=False)
    elif source == 'individual':
        qs = qs.filter(facility__isnull=True, user__isnull=False)
    trips = list(qs.order_by('-created_at')[:ALL_TRIPS_LIMIT])
    return {
        'success': True,
        'trips': [serialize_trip(t, expand=True) for t in trips],
        'stats': {
            'total': len(trips),
            'facility': sum(1 for t in trips if t.facility_id),
            'individual': sum(1 for t in trips if not t.facility_id and t.user_id),
        },
    }


def create_trip(dispatcher, data: dict) -> Trip:
    facility = data.get('facility')
    managed_client = data.get('managed_client')
    if managed_client is not None:
        facility = facility or managed_client.facility
        if managed_client.facility_id != facility.id:
            raise ValidationError({'managed_client': ['Managed client belongs to another facility']})
    if not facility and not data.get('user'):
        raise ValidationError('A trip needs a client or a facility')
    trip = Trip.objects.create(
        user=data.get('user'),
        managed_client=managed_client,
        facility=facility,
        pickup_address=data['pickup_address'],
        destination_address=data['destination_address'],
        pickup_time=data['pickup_time'],
        price=data.get('price'),
        wheelchair_type=data.get('wheelchair_type', ''),
        is_emergency=data.get('is_emergency', False),
        special_requirements=data.get('special_requirements', ''),
        payment_method_id=data.get('payment_method_id', ''),
        # facility trips are pre-approved and billed monthly
        status=Trip.STATUS_UPCOMING if facility else Trip.STATUS_PENDING,
    )
    log_action(user=dispatcher, action='trip_create', object_type='trip', object_id=trip.id)
    broadcast_trip_event(trip, 'created')
    if trip.user_id and not facility:
        _after_commit(notifications.notify_booking_user, trip.user, 'created', trip_id=trip.id)
    return trip


EDITABLE_FIELDS = (
    'pickup_address', 'destination_address', 'pickup_time', 'price', 'wheelchair_type',
    'is_emergency', 'special_requirements', 'vehicle',
)


def update_trip(trip_id, dispatcher, data: dict) -> Trip:
    with transaction.atomic():
        trip = get_trip(trip_id, lock=True)
        if trip.status in FINAL_STATUSES:
            raise InvalidStatusTransition(f"Cannot edit trip in status: {trip.status}")
        changed = [f for f in EDITABLE_FIELDS if f in data]
        for f in changed:
            setattr(trip, f, data[f])
        if changed:
            trip.save(update_fields=changed + ['updated_at'])
            log_action(user=dispatcher, action='trip_update', object_type='trip', object_id=trip.id,
                       detail={'fields': changed})
            broadcast_trip_event(trip, 'updated')
            if trip.driver_id:
                _after_commit(notifications.notify_driver, trip.driver, 'trip_updated', trip_id=trip.id)
    return get_trip(trip.id)

"""
Account management for dispatchers: users, drivers, clients, facilities.

Deletes cascade through the rows the shared database does not cascade on
its own (trips, invoices, managed clients, facility staff) and refuse to
run while the account still has trips on the schedule.
"""
import logging
import secrets
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, Q
from rest_framework.exceptions import NotFound, ValidationError

from dispatch.models import Facility, Invoice, ManagedClient, Trip
from dispatch.services.audit import log_action
from dispatch.services.realtime import invalidate_dashboard

User = get_user_model()
logger = logging.getLogger('dispatch.accounts')

MANAGED_ROLES = (User.ROLE_DRIVER, User.ROLE_CLIENT, User.ROLE_FACILITY)
PROFILE_FIELDS = ('first_name', 'last_name', 'phone_number', 'address', 'notes', 'vehicle_model',
                  'vehicle_license', 'status', 'metadata')
# Trips that block deleting the rider, facility or driver they belong to
BLOCKING_STATUSES = Trip.ACTIVE_STATUSES


def serialize_user(u) -> dict:
    return {
        'id': u.id,
        'username': u.username,
        'email': u.email,
        'first_name': u.first_name,
        'last_name': u.last_name,
        'full_name': u.full_name,
        'role': u.role,
        'phone_number': u.phone_number,
        'address': u.address,
        'facility_id': u.facility_id,
        'status': u.status,
        'vehicle_model': u.vehicle_model,
        'vehicle_license': u.vehicle_license,
        'notes': u.notes,
        'metadata': u.metadata,
        'is_active': u.is_active,
        'date_joined': u.date_joined.isoformat() if u.date_joined else None,
    }


def serialize_managed_client(c: ManagedClient) -> dict:
    return {
        'id': c.id,
        'facility_id': c.facility_id,
        'first_name': c.first_name,
        'last_name': c.last_name,
        'full_name': c.full_name,
        'email': c.email,
        'phone_number': c.phone_number,
        'address': c.address,
        'accessibility_needs': c.accessibility_needs,
        'created_at': c.created_at.isoformat(),
    }


def serialize_facility(f: Facility) -> dict:
    return {
        'id': f.id,
        'name': f.name,
        'address': f.address,
        'phone_number': f.phone_number,
        'contact_email': f.contact_email,
        'billing_email': f.billing_email,
        'facility_type': f.facility_type,
        'created_at': f.created_at.isoformat(),
    }


# ---------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------
def _apply_profile(user, profile: dict) -> list[str]:
    changed = []
    for f in PROFILE_FIELDS:
        if profile.get(f) not in (None, ''):
            setattr(user, f, profile[f])
            changed.append(f)
    return changed


@transaction.atomic
def create_or_update_user(dispatcher, *, email: str, role: str, profile: dict,
                          password: Optional[str] = None, facility: Optional[Facility] = None) -> tuple:
    """Create a driver/client/facility account, or refresh the profile of an existing one.

    Returns ``(user, created, initial_password)``. An existing account with a
    different role is refused instead of being converted.
    """
    if role not in MANAGED_ROLES:
        raise ValidationError({'role': [f"Role must be one of: {', '.join(MANAGED_ROLES)}"]})
    email = email.strip().lower()
    existing = User.objects.filter(email__iexact=email).first()
    if existing is not None:
        if existing.role != role:
            raise ValidationError(
                f"This user already has a different role ({existing.role}). Cannot change to {role}."
            )
        changed = _apply_profile(existing, profile)
        if facility is not None:
            existing.facility = facility
            changed.append('facility')
        if changed:
            existing.save(update_fields=changed + ['updated_at'])
        log_action(user=dispatcher, action='user_update', object_type='user', object_id=existing.id,
                   detail={'fields': changed})
        return existing, False, None

    initial_password = password or secrets.token_urlsafe(12)
    user = User(username=email, email=email, role=role, facility=facility)
    _apply_profile(user, profile)
    user.set_password(initial_password)
    user.save()
    if role == User.ROLE_DRIVER:
        invalidate_dashboard()
    log_action(user=dispatcher, action='user_create', object_type='user', object_id=user.id, detail={'role': role})
    logger.info('%s account %s created by %s', role, user.id, dispatcher.id)
    return user, True, (None if password else initial_password)


def get_user_with_role(user_id, role: str, label: str):
    try:
        return User.objects.get(id=user_id, role=role)
    except (User.DoesNotExist, ValueError):
        raise NotFound(f'{label} not found')


def list_drivers(*, status: Optional[str] = None) -> list[dict]:
    qs = User.objects.filter(role=User.ROLE_DRIVER).annotate(
        active_trips=Count('assigned_trips', filter=Q(assigned_trips__status__in=BLOCKING_STATUSES)),
    ).order_by('first_name', 'last_name')
    if status:
        qs = qs.filter(status=status)
    return [{**serialize_user(d), 'active_trips': d.active_trips} for d in qs]


def update_profile(dispatcher, user, data: dict):
    changed = [f for f in PROFILE_FIELDS + ('email', 'is_active') if f in data]
    for f in changed:
        setattr(user, f, data[f])
    if changed:
        user.save(update_fields=changed + ['updated_at'])
        if user.role == User.ROLE_DRIVER:
            invalidate_dashboard()
        log_action(user=dispatcher, action='user_update', object_type='user', object_id=user.id,
                   detail={'fields': changed})
    return user


def list_clients(*, q: Optional[str] = None) -> dict:
    users = User.objects.filter(role=User.ROLE_CLIENT).select_related('facility').order_by('-date_joined')
    managed = ManagedClient.objects.select_related('facility').order_by('-created_at')
    if q:
        users = users.filter(Q(first_name__icontains=q) | Q(last_name__icontains=q) | Q(email__icontains=q))
        managed = managed.filter(Q(first_name__icontains=q) | Q(last_name__icontains=q) | Q(email__icontains=q))
    return {
        'clients': [{**serialize_user(u), 'client_type': 'individual'} for u in users],
        'managed_clients': [
            {**serialize_managed_client(c), 'client_type': 'managed', 'facility_name': c.facility.name}
            for c in managed
        ],
    }


# ---------------------------------------------------------------------
# Deletes
# ---------------------------------------------------------------------
def _refuse_if_active(trips, label: str) -> None:
    n = trips.filter(status__in=BLOCKING_STATUSES).count()
    if n:
        raise ValidationError(
            f"Cannot delete {label} with {n} pending/upcoming trips. Please complete or cancel these trips first."
        )


@transaction.atomic
def delete_client(dispatcher, client_id) -> dict:
    client = get_user_with_role(client_id, User.ROLE_CLIENT, 'Client')
    trips = Trip.objects.filter(user=client)
    _refuse_if_active(trips, 'client')
    email = client.email
    deleted_trips, _ = trips.delete()
    Invoice.objects.filter(user=client).delete()
    if email:
        ManagedClient.objects.filter(email__iexact=email).delete()
    client.delete()
    invalidate_dashboard()
    log_action(user=dispatcher, action='client_delete', object_type='user', object_id=client_id,
               detail={'email': email, 'trips': deleted_trips})
    return {'success': True, 'message': 'Client deleted successfully', 'deletedEmail': email}


@transaction.atomic
def delete_managed_client(dispatcher, managed_client_id) -> dict:
    try:
        client = ManagedClient.objects.get(id=managed_client_id)
    except (ManagedClient.DoesNotExist, ValueError):
        raise NotFound('Managed client not found')
    trips = Trip.objects.filter(managed_client=client)
    _refuse_if_active(trips, 'managed client')
    Invoice.objects.filter(trip__in=trips).delete()
    trips.delete()
    name = client.full_name
    client.delete()
    invalidate_dashboard()
    log_action(user=dispatcher, action='managed_client_delete', object_type='managed_client',
               object_id=managed_client_id, detail={'name': name})
    return {'success': True, 'message': 'Managed client deleted successfully', 'deletedName': name}


@transaction.atomic
def delete_facility(dispatcher, facility_id) -> dict:
    try:
        facility = Facility.objects.get(id=facility_id)
    except (Facility.DoesNotExist, ValueError):
        raise NotFound('Facility not found')
    trips = Trip.objects.filter(facility=facility)
    _refuse_if_active(trips, 'facility')
    accounts = User.objects.filter(facility=facility, role__in=(User.ROLE_FACILITY, User.ROLE_CLIENT))
    account_ids = list(accounts.values_list('id', flat=True))
    Invoice.objects.filter(Q(facility=facility) | Q(user_id__in=account_ids)).delete()
    trips.delete()
    accounts.delete()
    name = facility.name
    # managed clients, monthly invoices and conversations cascade with the facility
    facility.delete()
    invalidate_dashboard()
    log_action(user=dispatcher, action='facility_delete', object_type='facility', object_id=facility_id,
               detail={'name': name, 'users': account_ids})
    return {'success': True, 'message': 'Facility deleted successfully', 'deletedName': name,
            'deletedUsers': len(account_ids)}


@transaction.atomic
def delete_driver(dispatcher, driver_id) -> dict:
    driver = get_user_with_role(driver_id, User.ROLE_DRIVER, 'Driver')
    _refuse_if_active(Trip.objects.filter(driver=driver), 'driver')
    name = driver.full_name
    driver.delete()
    invalidate_dashboard()
    log_action(user=dispatcher, action='driver_delete', object_type='user', object_id=driver_id,
               detail={'name': name})
    return {'success': True, 'message': 'Driver deleted successfully'}


# ---------------------------------------------------------------------
# Facilities
# ---------------------------------------------------------------------
FACILITY_FIELDS = ('name', 'address', 'phone_number', 'contact_email', 'billing_email', 'facility_type')


def get_facility(facility_id) -> Facility:
    try:
        return Facility.objects.get(id=facility_id)
    except (Facility.DoesNotExist, ValueError):
        raise NotFound('Facility not found')


def facility_detail(facility: Facility) -> dict:
    trips = Trip.objects.filter(facility=facility)
    return {
        **serialize_facility(facility),
        'users': [serialize_user(u) for u in facility.users.filter(role=User.ROLE_FACILITY)],
        'managed_clients': [serialize_managed_client(c) for c in facility.managed_clients.all()],
        'trip_counts': {
            'total': trips.count(),
            'active': trips.filter(status__in=BLOCKING_STATUSES).count(),
            'completed': trips.filter(status=Trip.STATUS_COMPLETED).count(),
        },
    }


def save_facility(dispatcher, data: dict, facility: Optional[Facility] = None) -> Facility:
    created = facility is None
    facility = facility or Facility()
    for f in FACILITY_FIELDS:
        if f in data:
            setattr(facility, f, data[f])
    facility.save()
    log_action(user=dispatcher, action='facility_create' if created else 'facility_update',
               object_type='facility', object_id=facility.id)
    return facility

import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from dispatch.models import AuditEvent, Facility, Invoice, ManagedClient, Trip, User

pytestmark = pytest.mark.django_db


# ---------------------------------------------------------------------
# User creation
# ---------------------------------------------------------------------
def test_create_driver_returns_generated_password(api):
    r = api.post(reverse('create_user'), {
        'email': 'New.Driver@Example.com',
        'role': 'driver',
        'userProfile': {'first_name': 'Nia', 'last_name': 'Wheels', 'vehicle_model': 'Ford Transit'},
    }, format='json')

    assert r.status_code == 201
    assert r.data['message'] == 'Driver created successfully'
    user = User.objects.get(id=r.data['userId'])
    assert user.email == 'new.driver@example.com'
    assert user.role == User.ROLE_DRIVER
    assert user.check_password(r.data['initialPassword'])


def test_create_user_with_password_hides_it(api):
    r = api.post(reverse('create_user'), {
        'email': 'client9@example.com', 'password': 'a-strong-one', 'role': 'client',
        'userProfile': {'first_name': 'Cleo'},
    }, format='json')
    assert r.status_code == 201
    assert 'initialPassword' not in r.data


def test_create_user_updates_existing_same_role(api, driver):
    r = api.post(reverse('create_user'), {
        'email': driver.email, 'role': 'driver', 'userProfile': {'first_name': 'Samuel', 'phone_number': '614-555-0101'},
    }, format='json')
    assert r.status_code == 200
    assert r.data['message'] == 'Driver profile updated successfully'
    driver.refresh_from_db()
    assert driver.first_name == 'Samuel'
    assert driver.phone_number == '614-555-0101'


def test_create_user_refuses_role_change(api, client_user):
    r = api.post(reverse('create_user'), {
        'email': client_user.email, 'role': 'driver', 'userProfile': {'first_name': 'Casey'},
    }, format='json')
    assert r.status_code == 400
    assert 'different role (client)' in r.data['error']
    client_user.refresh_from_db()
    assert client_user.role == User.ROLE_CLIENT


def test_create_dispatcher_is_not_allowed(api):
    r = api.post(reverse('create_user'), {
        'email': 'x@example.com', 'role': 'dispatcher', 'userProfile': {'first_name': 'X'},
    }, format='json')
    assert r.status_code == 400


# ---------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------
def test_list_clients_includes_managed(api, client_user, managed_client):
    r = api.get(reverse('clients'))
    assert r.status_code == 200
    assert [c['id'] for c in r.data['clients']] == [client_user.id]
    assert r.data['managed_clients'][0]['facility_name'] == 'Riverside Care Home'

    r = api.get(reverse('clients'), {'q': 'ruth'})
    assert r.data['clients'] == []
    assert len(r.data['managed_clients']) == 1


def test_client_detail_update(api, client_user):
    r = api.put(reverse('client_detail', args=[client_user.id]), {'phone_number': '614-555-0199'}, format='json')
    assert r.status_code == 200
    assert r.data['client']['phone_number'] == '614-555-0199'


def test_client_detail_wrong_role_is_404(api, driver):
    r = api.get(reverse('client_detail', args=[driver.id]))
    assert r.status_code == 404
    assert r.data['error'] == 'Client not found'


def test_delete_client_cascades(api, client_user, make_trip, facility):
    trip = make_trip(user=client_user, status=Trip.STATUS_COMPLETED)
    Invoice.objects.create(user=client_user, trip=trip, invoice_number='DISP-20300101-0001', amount='45.00')
    ManagedClient.objects.create(facility=facility, first_name='Casey', email='CLIENT1@example.com')

    r = api.delete(reverse('delete_client'), {'clientId': client_user.id}, format='json')

    assert r.status_code == 200
    assert r.data['deletedEmail'] == 'client1@example.com'
    assert not User.objects.filter(id=client_user.id).exists()
    assert not Trip.objects.filter(id=trip.id).exists()
    assert not Invoice.objects.exists()
    assert not ManagedClient.objects.filter(email__iexact='client1@example.com').exists()
    assert AuditEvent.objects.filter(action='client_delete').exists()


@pytest.mark.parametrize('status', [
    Trip.STATUS_PENDING, Trip.STATUS_UPCOMING, Trip.STATUS_IN_PROGRESS, Trip.STATUS_AWAITING_DRIVER,
])
def test_delete_client_with_active_trips_is_refused(api, client_user, make_trip, status):
    make_trip(user=client_user, status=status)
    r = api.delete(reverse('delete_client'), {'clientId': client_user.id}, format='json')
    assert r.status_code == 400
    assert r.data['error'].startswith('Cannot delete client with 1 pending/upcoming trips')
    assert User.objects.filter(id=client_user.id).exists()


def test_delete_client_missing_id(api):
    r = api.delete(reverse('delete_client'), {}, format='json')
    assert r.status_code == 400
    assert 'Client ID is required' in r.data['error']


def test_delete_managed_client(api, managed_client, make_trip, facility):
    make_trip(facility=facility, managed_client=managed_client, status=Trip.STATUS_CANCELLED)
    r = api.delete(reverse('delete_managed_client'), {'managedClientId': managed_client.id}, format='json')
    assert r.status_code == 200
    assert r.data['deletedName'] == 'Ruth Resident'
    assert not ManagedClient.objects.exists()
    assert not Trip.objects.exists()


def test_delete_managed_client_unknown(api):
    r = api.delete(reverse('delete_managed_client'), {'managedClientId': 999}, format='json')
    assert r.status_code == 404


# ---------------------------------------------------------------------
# Facilities
# ---------------------------------------------------------------------
def test_create_and_edit_facility(api):
    r = api.post(reverse('facilities'), {'name': 'Elm Dialysis', 'contact_email': 'elm@example.com'}, format='json')
    assert r.status_code == 201
    fid = r.data['facility']['id']

    r = api.put(reverse('facility_detail', args=[fid]), {'phone_number': '614-555-0000'}, format='json')
    assert r.status_code == 200
    assert r.data['facility']['phone_number'] == '614-555-0000'
    assert r.data['facility']['trip_counts'] == {'total': 0, 'active': 0, 'completed': 0}


def test_delete_facility_removes_staff_and_trips(api, facility, managed_client, make_trip):
    staff = User.objects.create_user(username='fac1', email='fac1@example.com', password='x',
                                     role=User.ROLE_FACILITY, facility=facility)
    make_trip(facility=facility, managed_client=managed_client, status=Trip.STATUS_COMPLETED)

    r = api.delete(reverse('delete_facility'), {'facilityId': facility.id}, format='json')

    assert r.status_code == 200
    assert r.data['deletedUsers'] == 1
    assert not Facility.objects.exists()
    assert not User.objects.filter(id=staff.id).exists()
    assert not Trip.objects.exists()
    assert not ManagedClient.objects.exists()


def test_delete_facility_with_upcoming_trips_is_refused(api, facility, managed_client, make_trip):
    make_trip(facility=facility, managed_client=managed_client, status=Trip.STATUS_UPCOMING)
    r = api.delete(reverse('delete_facility'), {'facilityId': facility.id}, format='json')
    assert r.status_code == 400
    assert Facility.objects.filter(id=facility.id).exists()


# ---------------------------------------------------------------------
# Drivers
# ---------------------------------------------------------------------
def test_delete_driver(api, driver):
    r = api.delete(reverse('delete_driver') + f'?driverId={driver.id}')
    assert r.status_code == 200
    assert not User.objects.filter(id=driver.id).exists()


def test_delete_driver_on_a_trip_is_refused(api, driver, make_trip):
    make_trip(status=Trip.STATUS_IN_PROGRESS, driver=driver)
    r = api.delete(reverse('delete_driver') + f'?driverId={driver.id}')
    assert r.status_code == 400
    assert User.objects.filter(id=driver.id).exists()


def test_driver_detail_lists_trips(api, driver, make_trip):
    make_trip(status=Trip.STATUS_COMPLETED, driver=driver)
    r = api.get(reverse('driver_detail', args=[driver.id]))
    assert r.status_code == 200
    assert r.data['driver']['full_name'] == 'Sam Driver'
    assert len(r.data['trips']) == 1


def test_deletes_need_dispatcher(client_user, driver):
    c = APIClient()
    c.force_authenticate(user=driver)
    r = c.delete(reverse('delete_client'), {'clientId': client_user.id}, format='json')
    assert r.status_code == 403
    assert User.objects.filter(id=client_user.id).exists()

import re
from datetime import timedelta

import pytest
from django.core import mail
from django.urls import reverse
from rest_framework.test import APIClient

from dispatch.models import Notification, Trip, User
from dispatch.services.assignment_tokens import make_assignment_token

pytestmark = pytest.mark.django_db


def _token_from(body, action):
    m = re.search(r'respond\?token=([^&\s]+)&action=' + action, body)
    assert m, body
    return m.group(1)


def test_dispatcher_assign_sets_awaiting_and_emails_driver(api, make_trip, client_user, driver,
                                                           django_capture_on_commit_callbacks):
    trip = make_trip(user=client_user, status=Trip.STATUS_UPCOMING)

    with django_capture_on_commit_callbacks(execute=True):
        r = api.post(reverse('dispatcher_assign_trip'), {'tripId': str(trip.id), 'driverId': driver.id},
                     format='json')

    assert r.status_code == 200
    assert r.data['data']['status'] == Trip.STATUS_AWAITING_DRIVER
    trip.refresh_from_db()
    driver.refresh_from_db()
    assert trip.driver_id == driver.id
    assert trip.driver_acceptance_status == Trip.ACCEPTANCE_PENDING
    assert driver.status == User.STATUS_ON_TRIP

    assert len(mail.outbox) == 1
    msg = mail.outbox[0]
    assert msg.to == ['driver1@example.com']
    assert msg.subject.startswith('New trip assignment')
    assert trip.pickup_address in msg.body
    assert _token_from(msg.body, 'accept')
    assert Notification.objects.filter(user=driver, app_type=Notification.APP_DRIVER).exists()


def test_emergency_assignment_subject(api, make_trip, client_user, driver, django_capture_on_commit_callbacks):
    trip = make_trip(user=client_user, status=Trip.STATUS_UPCOMING, is_emergency=True)
    with django_capture_on_commit_callbacks(execute=True):
        api.post(reverse('dispatcher_assign_trip'), {'tripId': str(trip.id), 'driverId': driver.id}, format='json')
    assert mail.outbox[0].subject.startswith('URGENT: ')


def test_assign_conflict_is_400(api, make_trip, client_user, driver):
    busy = make_trip(user=client_user, status=Trip.STATUS_IN_PROGRESS, driver=driver)
    trip = make_trip(user=client_user, status=Trip.STATUS_UPCOMING,
                     pickup_time=busy.pickup_time - timedelta(hours=1))

    r = api.post(reverse('dispatcher_assign_trip'), {'tripId': str(trip.id), 'driverId': driver.id}, format='json')

    assert r.status_code == 400
    assert r.data['error'] == 'Driver has conflicting trips at this time'
    trip.refresh_from_db()
    assert trip.driver_id is None
    assert len(mail.outbox) == 0


def test_assign_outside_window_is_fine(api, make_trip, client_user, driver):
    busy = make_trip(user=client_user, status=Trip.STATUS_IN_PROGRESS, driver=driver)
    trip = make_trip(user=client_user, status=Trip.STATUS_UPCOMING,
                     pickup_time=busy.pickup_time - timedelta(hours=6))
    r = api.post(reverse('dispatcher_assign_trip'), {'tripId': str(trip.id), 'driverId': driver.id}, format='json')
    assert r.status_code == 200


def test_assign_already_assigned_trip(api, make_trip, driver):
    other = User.objects.create_user(username='driver2', password='x', role=User.ROLE_DRIVER)
    trip = make_trip(status=Trip.STATUS_UPCOMING, driver=other)
    r = api.post(reverse('dispatcher_assign_trip'), {'tripId': str(trip.id), 'driverId': driver.id}, format='json')
    assert r.status_code == 400
    trip.refresh_from_db()
    assert trip.driver_id == other.id


def test_assign_non_driver_is_404(api, make_trip, client_user):
    trip = make_trip(status=Trip.STATUS_UPCOMING)
    r = api.post(reverse('dispatcher_assign_trip'), {'tripId': str(trip.id), 'driverId': client_user.id},
                 format='json')
    assert r.status_code == 404
    assert r.data['error'] == 'Driver not found'


def test_assign_driver_keeps_status(api, make_trip, client_user, driver, django_capture_on_commit_callbacks):
    trip = make_trip(user=client_user, status=Trip.STATUS_PENDING)
    with django_capture_on_commit_callbacks(execute=True):
        r = api.post(reverse('trip_assign_driver'), {'tripId': str(trip.id), 'driverId': driver.id}, format='json')
    assert r.status_code == 200
    trip.refresh_from_db()
    assert trip.status == Trip.STATUS_PENDING
    assert trip.driver_name == 'Sam Driver'
    assert Notification.objects.filter(user=client_user, app_type=Notification.APP_BOOKING).exists()


def test_assign_completed_trip_is_refused(api, make_trip, driver):
    trip = make_trip(status=Trip.STATUS_COMPLETED)
    r = api.post(reverse('trip_assign_driver'), {'tripId': str(trip.id), 'driverId': driver.id}, format='json')
    assert r.status_code == 400


# ---------------------------------------------------------------------
# Driver response via signed link
# ---------------------------------------------------------------------
def test_driver_accepts(make_trip, driver):
    trip = make_trip(status=Trip.STATUS_AWAITING_DRIVER, driver=driver,
                     driver_acceptance_status=Trip.ACCEPTANCE_PENDING)
    token = make_assignment_token(trip.id, driver.id)

    r = APIClient().post(reverse('trip_respond'), {'token': token, 'action': 'accept'}, format='json')

    assert r.status_code == 200
    trip.refresh_from_db()
    assert trip.status == Trip.STATUS_IN_PROGRESS
    assert trip.driver_acceptance_status == Trip.ACCEPTANCE_ACCEPTED
    assert trip.driver_response_time is not None


def test_driver_declines_and_trip_returns_to_queue(make_trip, driver):
    driver.status = User.STATUS_ON_TRIP
    driver.save()
    trip = make_trip(status=Trip.STATUS_AWAITING_DRIVER, driver=driver, driver_name='Sam Driver')

    r = APIClient().post(reverse('trip_respond'),
                         {'token': make_assignment_token(trip.id, driver.id), 'action': 'reject'}, format='json')

    assert r.status_code == 200
    trip.refresh_from_db()
    driver.refresh_from_db()
    assert trip.status == Trip.STATUS_UPCOMING
    assert trip.driver_id is None
    assert trip.rejected_by_driver_id == driver.id
    assert driver.status == User.STATUS_AVAILABLE


def test_stale_link_after_reassignment_is_403(make_trip, driver):
    other = User.objects.create_user(username='driver2', password='x', role=User.ROLE_DRIVER)
    trip = make_trip(status=Trip.STATUS_AWAITING_DRIVER, driver=other)
    r = APIClient().post(reverse('trip_respond'),
                         {'token': make_assignment_token(trip.id, driver.id), 'action': 'accept'}, format='json')
    assert r.status_code == 403
    assert r.data['error'] == 'This trip is no longer assigned to you'


def test_tampered_link_is_400(make_trip, driver):
    trip = make_trip(status=Trip.STATUS_AWAITING_DRIVER, driver=driver)
    token = make_assignment_token(trip.id, driver.id) + 'x'
    r = APIClient().post(reverse('trip_respond'), {'token': token, 'action': 'accept'}, format='json')
    assert r.status_code == 400
    assert r.data['error'] == 'Invalid assignment link'


def test_expired_link_is_403(make_trip, driver, settings):
    trip = make_trip(status=Trip.STATUS_AWAITING_DRIVER, driver=driver)
    token = make_assignment_token(trip.id, driver.id)
    settings.ASSIGNMENT_TOKEN_MAX_AGE = -1

    r = APIClient().post(reverse('trip_respond'), {'token': token, 'action': 'accept'}, format='json')

    assert r.status_code == 403
    assert r.data['error'] == 'This assignment link has expired'
    trip.refresh_from_db()
    assert trip.status == Trip.STATUS_AWAITING_DRIVER


# ---------------------------------------------------------------------
# Dispatcher completion and driver status repair
# ---------------------------------------------------------------------
def test_dispatcher_complete_frees_driver(api, make_trip, driver):
    driver.status = User.STATUS_ON_TRIP
    driver.save()
    trip = make_trip(status=Trip.STATUS_IN_PROGRESS, driver=driver)

    r = api.post(reverse('dispatcher_complete_trip'), {'tripId': str(trip.id)}, format='json')

    assert r.status_code == 200
    trip.refresh_from_db()
    driver.refresh_from_db()
    assert trip.status == Trip.STATUS_COMPLETED
    assert driver.status == User.STATUS_AVAILABLE


def test_dispatcher_complete_pending_is_400(api, make_trip):
    trip = make_trip(status=Trip.STATUS_PENDING)
    r = api.post(reverse('dispatcher_complete_trip'), {'tripId': str(trip.id)}, format='json')
    assert r.status_code == 400


def test_fix_status_resets_idle_drivers(api, make_trip, driver):
    busy = User.objects.create_user(username='driver2', password='x', role=User.ROLE_DRIVER,
                                    status=User.STATUS_ON_TRIP)
    make_trip(status=Trip.STATUS_IN_PROGRESS, driver=busy)
    driver.status = User.STATUS_ON_TRIP
    driver.save()

    r = api.post(reverse('drivers_fix_status'), {}, format='json')

    assert r.status_code == 200
    assert r.data['message'] == 'Fixed 1 driver statuses'
    assert r.data['fixedDrivers'] == [{'id': driver.id, 'name': 'Sam Driver'}]
    busy.refresh_from_db()
    assert busy.status == User.STATUS_ON_TRIP


def test_driver_list_filters_by_status(api, driver):
    User.objects.create_user(username='driver2', password='x', role=User.ROLE_DRIVER, status=User.STATUS_OFFLINE)
    r = api.get(reverse('drivers'), {'status': 'available'})
    assert r.status_code == 200
    assert [d['id'] for d in r.data['drivers']] == [driver.id]

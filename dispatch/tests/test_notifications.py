import pytest
import requests
from django.urls import reverse
from rest_framework.test import APIClient

from dispatch.models import Notification, PushToken, User
from dispatch.services import notifications
from dispatch.tests.conftest import FakeResponse

pytestmark = pytest.mark.django_db

SERVICE_KEY = 'svc-test-key'


@pytest.fixture
def service(settings):
    settings.INTERNAL_API_KEY = SERVICE_KEY
    c = APIClient()
    c.credentials(HTTP_X_SERVICE_KEY=SERVICE_KEY)
    return c


@pytest.fixture
def sent(monkeypatch):
    calls = []

    def post(url, json=None, headers=None, timeout=None):
        calls.append({'url': url, 'json': json, 'headers': headers})
        if 'exp.host' in url:
            return FakeResponse(200, {'data': [{'status': 'ok'} for _ in json]})
        return FakeResponse(200, {'id': 'onesignal-1', 'recipients': 1})

    monkeypatch.setattr('dispatch.services.notifications.requests.post', post)
    return calls


# ---------------------------------------------------------------------
# Message templates
# ---------------------------------------------------------------------
@pytest.mark.parametrize('action, source, title, body', [
    ('new', 'booking_app', 'New Trip Request', 'New individual trip: 1 Elm St'),
    ('created', 'facility_app', 'New Trip Request', 'New facility trip: 1 Elm St'),
    ('confirmed', None, 'Trip Approved', 'Trip has been approved'),
    ('canceled', None, 'Trip Cancelled', 'A trip has been cancelled'),
    ('teleported', None, 'Trip Notification', 'Trip status changed'),
])
def test_dispatcher_message(action, source, title, body):
    assert notifications.dispatcher_message(action, source=source, details={'pickup_address': '1 Elm St'}) == (title, body)


def test_driver_message_uses_first_address_part():
    assert notifications.driver_message('trip_assigned', {'pickupAddress': '12 Oak Ave, Columbus, OH'}) == (
        'New Trip Assigned', 'You have been assigned a trip to 12 Oak Ave',
    )
    assert notifications.driver_message('assigned') == ('New Trip Assigned', 'You have been assigned a new trip')
    assert notifications.driver_message('whatever') == ('Trip Update', 'You have a trip update')


def test_booking_message_aliases():
    assert notifications.booking_message('upcoming') == ('Trip Approved', 'Your trip has been approved and scheduled!')
    assert notifications.booking_message('zzz') == ('Trip Update', 'Your trip status has been updated')


def test_preview_is_truncated():
    assert notifications.truncate_preview('x' * 150) == 'x' * 100 + '...'
    assert notifications.truncate_preview('short') == 'short'


# ---------------------------------------------------------------------
# Service-to-service endpoints
# ---------------------------------------------------------------------
def test_push_endpoints_need_key(settings):
    settings.INTERNAL_API_KEY = SERVICE_KEY
    c = APIClient()
    assert c.post(reverse('send_dispatcher_push'), {'action': 'new'}, format='json').status_code == 401
    c.credentials(HTTP_X_SERVICE_KEY='wrong')
    assert c.post(reverse('send_dispatcher_push'), {'action': 'new'}, format='json').status_code == 401


def test_push_endpoints_closed_when_key_unset(settings):
    settings.INTERNAL_API_KEY = ''
    c = APIClient()
    c.credentials(HTTP_X_SERVICE_KEY='')
    assert c.post(reverse('send_dispatcher_push'), {'action': 'new'}, format='json').status_code == 401


def test_dispatcher_push_stores_and_sends(service, sent, settings, dispatcher, admin_user, driver):
    settings.ONESIGNAL_APP_ID = 'app-1'
    settings.ONESIGNAL_REST_API_KEY = 'rest-key'
    PushToken.objects.create(user=dispatcher, app_type='dispatcher', push_token='ExponentPushToken[abc]')

    r = service.post(reverse('send_dispatcher_push'), {
        'tripId': 'trip-1', 'action': 'new', 'source': 'booking_app', 'tripDetails': {'pickup_address': '5 Pine Rd'},
    }, format='json')

    assert r.status_code == 200
    assert r.data['title'] == 'New Trip Request'
    assert r.data['oneSignal']['dispatchersNotified'] == 2
    assert r.data['expo'] == {'sent': 1, 'failed': 0, 'total': 1}
    assert Notification.objects.filter(app_type='dispatcher').count() == 2
    assert not Notification.objects.filter(user=driver).exists()

    onesignal = next(c for c in sent if 'onesignal' in c['url'])
    assert onesignal['headers']['Authorization'] == 'Key rest-key'
    assert onesignal['json']['filters'][0]['value'] == 'dispatcher'
    assert onesignal['json']['data']['tripId'] == 'trip-1'


def test_onesignal_skipped_without_credentials(service, sent, dispatcher):
    r = service.post(reverse('send_dispatcher_push'), {'action': 'completed'}, format='json')
    assert r.status_code == 200
    assert r.data['oneSignal']['result'] is None
    assert sent == []


def test_driver_push(service, sent, driver):
    r = service.post(reverse('send_driver_push'), {
        'driverId': driver.id, 'action': 'assigned', 'tripId': 't-9', 'data': {'pickupAddress': '7 Birch Ln, Dublin'},
    }, format='json')
    assert r.status_code == 200
    assert r.data['body'] == 'You have been assigned a trip to 7 Birch Ln'
    n = Notification.objects.get(user=driver)
    assert n.app_type == Notification.APP_DRIVER
    assert n.data['tripId'] == 't-9'


def test_driver_push_unknown_driver(service, client_user):
    r = service.post(reverse('send_driver_push'), {'driverId': client_user.id}, format='json')
    assert r.status_code == 404


def test_booking_push(service, sent, client_user):
    r = service.post(reverse('send_booking_push'), {'userId': client_user.id, 'action': 'completed',
                                                    'tripId': 't-1', 'data': {'amount': '45.00'}}, format='json')
    assert r.status_code == 200
    n = Notification.objects.get(user=client_user)
    assert n.app_type == Notification.APP_BOOKING
    assert n.data['amount'] == '45.00'
    assert n.title == 'Trip Completed'


def test_facility_push_fans_out(service, sent, facility):
    for i in range(2):
        User.objects.create_user(username=f'fac{i}', password='x', role=User.ROLE_FACILITY, facility=facility)
    r = service.post(reverse('send_facility_push'), {
        'facilityId': facility.id, 'title': 'Trip update', 'body': 'Your resident is on the way',
    }, format='json')
    assert r.status_code == 200
    assert r.data['stored'] == 2


def test_message_notification_only_for_facility_senders(service, sent, dispatcher):
    r = service.post(reverse('send_message_notification'), {
        'conversationId': 3, 'senderName': 'Riverside', 'message': 'y' * 120, 'senderRole': 'facility',
    }, format='json')
    assert r.status_code == 200
    n = Notification.objects.get(user=dispatcher)
    assert n.title == 'New Message from Riverside'
    assert n.body == 'y' * 100 + '...'

    r = service.post(reverse('send_message_notification'), {
        'conversationId': 3, 'message': 'hi', 'senderRole': 'dispatcher',
    }, format='json')
    assert r.data['skipped'] is True


def test_expo_failure_is_reported_not_raised(service, monkeypatch, dispatcher):
    def boom(*args, **kwargs):
        raise requests.ConnectionError('down')

    monkeypatch.setattr('dispatch.services.notifications.requests.post', boom)
    PushToken.objects.create(user=dispatcher, app_type='dispatcher', push_token='ExpoPushToken[x]')
    r = service.post(reverse('send_dispatcher_push'), {'action': 'approved'}, format='json')
    assert r.status_code == 200
    assert r.data['expo'] == {'sent': 0, 'failed': 1, 'total': 1}


# ---------------------------------------------------------------------
# Dispatcher notification list
# ---------------------------------------------------------------------
def test_list_and_mark_read(api, dispatcher):
    notifications.notify_dispatchers('approved', trip_id='t-1')
    notifications.notify_dispatchers('completed', trip_id='t-2')

    r = api.get(reverse('notifications'))
    assert r.status_code == 200
    assert r.data['unread'] == 2
    first = r.data['notifications'][0]['id']

    r = api.post(reverse('notifications_read'), {'ids': [first]}, format='json')
    assert r.data['updated'] == 1
    r = api.post(reverse('notifications_read'), {'all': True}, format='json')
    assert r.data['updated'] == 1
    assert api.get(reverse('notifications')).data['unread'] == 0


def test_register_push_token_upserts(api, dispatcher):
    api.post(reverse('push_token'), {'pushToken': 'ExponentPushToken[one]', 'platform': 'ios'}, format='json')
    api.post(reverse('push_token'), {'pushToken': 'ExponentPushToken[two]', 'platform': 'ios'}, format='json')
    token = PushToken.objects.get(user=dispatcher)
    assert token.push_token == 'ExponentPushToken[two]'
    assert token.app_type == 'dispatcher'

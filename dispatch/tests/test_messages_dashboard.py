import pytest
import requests
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from django.core.cache import cache
from django.core.management import call_command
from django.db import transaction
from django.urls import reverse

from dispatch.models import Conversation, Message, Notification, Trip, User
from dispatch.realtime.consumers import TripUpdatesConsumer
from dispatch.services.dashboard import trip_dashboard
from dispatch.services.realtime import DASHBOARD_CACHE_KEY, TRIPS_GROUP, broadcast_trip_event
from dispatch.tests.conftest import FakeResponse

pytestmark = pytest.mark.django_db


@pytest.fixture
def conversation(facility):
    conv = Conversation.objects.create(facility=facility, subject='Scheduling')
    Message.objects.create(conversation=conv, sender_role='facility', content='Can we move the 9am pickup?')
    return conv


# ---------------------------------------------------------------------
# Messaging
# ---------------------------------------------------------------------
def test_conversation_list_counts_unread(api, conversation):
    r = api.get(reverse('conversations'))
    assert r.status_code == 200
    assert r.data['conversations'][0]['unread_count'] == 1
    assert r.data['conversations'][0]['facility_name'] == 'Riverside Care Home'


def test_reply_marks_read_and_notifies_facility(api, conversation, facility, django_capture_on_commit_callbacks):
    staff = User.objects.create_user(username='fac1', password='x', role=User.ROLE_FACILITY, facility=facility)

    with django_capture_on_commit_callbacks(execute=True):
        r = api.post(reverse('conversation_detail', args=[conversation.id]),
                     {'content': 'Sure, <b>moved</b> to 9:30<script>x</script>'}, format='json')

    assert r.status_code == 201
    assert '<' not in r.data['message']['content']
    assert r.data['message']['sender_role'] == 'dispatcher'
    assert not conversation.messages.filter(sender_role='facility', read=False).exists()
    conversation.refresh_from_db()
    assert conversation.last_message_at is not None
    assert Notification.objects.filter(user=staff, app_type=Notification.APP_FACILITY).exists()


def test_empty_reply_is_400(api, conversation):
    r = api.post(reverse('conversation_detail', args=[conversation.id]), {'content': '<p></p>'}, format='json')
    assert r.status_code == 400
    assert r.data['error'] == 'content: Message cannot be empty'
    assert conversation.messages.count() == 1


def test_conversation_detail_lists_messages(api, conversation):
    r = api.get(reverse('conversation_detail', args=[conversation.id]))
    assert r.status_code == 200
    assert [m['content'] for m in r.data['messages']] == ['Can we move the 9am pickup?']


def test_unknown_conversation_is_404(api):
    assert api.get(reverse('conversation_detail', args=[999])).status_code == 404


# ---------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------
def test_dashboard_counts_and_cache(api, make_trip, driver):
    make_trip()
    make_trip(status=Trip.STATUS_UPCOMING)

    r = api.get(reverse('dashboard'))
    assert r.status_code == 200
    assert r.data['total'] == 2
    assert r.data['pendingApprovals'] == 1
    assert r.data['unassignedUpcoming'] == 1
    assert r.data['drivers']['available'] == 1
    assert cache.get(DASHBOARD_CACHE_KEY) is not None

    # cached until something invalidates it
    make_trip()
    make_trip()
    assert api.get(reverse('dashboard')).data['total'] == 2
    assert api.get(reverse('dashboard'), {'refresh': '1'}).data['total'] == 4


def test_trip_change_drops_dashboard_cache(api, make_trip):
    trip = make_trip()
    api.get(reverse('dashboard'))
    api.post(reverse('trip_actions'), {'tripId': str(trip.id), 'action': 'reject'}, format='json')
    assert cache.get(DASHBOARD_CACHE_KEY) is None


def test_dashboard_cached_mid_write_is_dropped_on_commit(make_trip, django_capture_on_commit_callbacks):
    trip = make_trip()

    with django_capture_on_commit_callbacks(execute=True):
        with transaction.atomic():
            broadcast_trip_event(trip, 'cancelled')
            # a concurrent reader recomputes before the write commits
            trip_dashboard()
            assert cache.get(DASHBOARD_CACHE_KEY) is not None

    assert cache.get(DASHBOARD_CACHE_KEY) is None


def test_account_changes_drop_dashboard_cache(api, driver, django_capture_on_commit_callbacks):
    trip_dashboard()
    with django_capture_on_commit_callbacks(execute=True):
        r = api.delete(reverse('delete_driver') + f'?driverId={driver.id}')
    assert r.status_code == 200
    assert cache.get(DASHBOARD_CACHE_KEY) is None
    assert api.get(reverse('dashboard')).data['drivers']['available'] == 0


def test_fix_status_drops_dashboard_cache(api, driver, django_capture_on_commit_callbacks):
    driver.status = User.STATUS_ON_TRIP
    driver.save()
    assert trip_dashboard()['drivers']['on_trip'] == 1

    with django_capture_on_commit_callbacks(execute=True):
        api.post(reverse('drivers_fix_status'), {}, format='json')

    assert api.get(reverse('dashboard')).data['drivers']['available'] == 1


def test_refresh_caches_command(make_trip):
    make_trip()
    call_command('refresh_caches')
    assert cache.get(DASHBOARD_CACHE_KEY)['total'] == 1


# ---------------------------------------------------------------------
# Payment reminders
# ---------------------------------------------------------------------
def test_send_reminder_counts(api, make_trip, client_user, monkeypatch):
    calls = []

    def post(url, json=None, timeout=None):
        calls.append((url, json))
        return FakeResponse(200, {'success': True})

    monkeypatch.setattr('dispatch.services.payments.requests.post', post)
    trip = make_trip(user=client_user, status=Trip.STATUS_UPCOMING, payment_status=Trip.PAYMENT_PENDING,
                     payment_error='Automatic payment failed: declined. Manual payment required.')

    r = api.post(reverse('trip_send_reminder'), {'tripId': str(trip.id)}, format='json')
    assert r.status_code == 200
    assert r.data['reminderCount'] == 1
    assert calls[0][0].endswith('/api/trips/payment-reminder')
    assert calls[0][1]['userEmail'] == 'client1@example.com'
    assert calls[0][1]['amount'] == '45.00'

    r = api.post(reverse('trip_send_reminder'), {'tripId': str(trip.id)}, format='json')
    assert r.data['reminderCount'] == 2
    trip.refresh_from_db()
    assert trip.payment_reminder_sent_at is not None


def test_send_reminder_for_paid_trip_is_400(api, make_trip, client_user):
    trip = make_trip(user=client_user, status=Trip.STATUS_PAID_IN_PROGRESS, payment_status=Trip.PAYMENT_PAID)
    r = api.post(reverse('trip_send_reminder'), {'tripId': str(trip.id)}, format='json')
    assert r.status_code == 400


def test_send_reminder_upstream_failure_is_502(api, make_trip, client_user, monkeypatch):
    def post(*args, **kwargs):
        raise requests.ConnectionError('refused')

    monkeypatch.setattr('dispatch.services.payments.requests.post', post)
    trip = make_trip(user=client_user, status=Trip.STATUS_PAYMENT_FAILED)
    r = api.post(reverse('trip_send_reminder'), {'tripId': str(trip.id)}, format='json')
    assert r.status_code == 502
    assert r.data['error'].startswith('Failed to send reminder')
    trip.refresh_from_db()
    assert trip.payment_reminder_count == 0


# ---------------------------------------------------------------------
# WebSocket
# ---------------------------------------------------------------------
def test_websocket_receives_trip_updates():
    async def run():
        communicator = WebsocketCommunicator(TripUpdatesConsumer.as_asgi(), '/ws/trips/')
        connected, _ = await communicator.connect()
        assert connected
        welcome = await communicator.receive_json_from()
        assert welcome['type'] == 'welcome'
        await get_channel_layer().group_send(TRIPS_GROUP, {
            'type': 'trip.update', 'tripId': 't-1', 'status': 'upcoming', 'action': 'approved', 'ts': 'now',
        })
        event = await communicator.receive_json_from()
        assert event['tripId'] == 't-1'
        assert event['status'] == 'upcoming'
        await communicator.disconnect()

    async_to_sync(run)()


# ---------------------------------------------------------------------
# Management commands
# ---------------------------------------------------------------------
def test_ensure_test_users_is_idempotent():
    call_command('ensure_test_users')
    call_command('ensure_test_users')
    assert User.objects.filter(username='dispatcher1', role=User.ROLE_DISPATCHER).count() == 1
    assert User.objects.get(username='driver1').check_password('dispatch-test-1')


def test_populate_data_is_seeded():
    call_command('populate_data', trips=12, seed=7)
    assert Trip.objects.count() == 12
    assert User.objects.filter(role=User.ROLE_DRIVER).count() == 5

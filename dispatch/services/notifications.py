"""
Push notifications for the four transport apps.

Each notification is stored as a ``Notification`` row per recipient so the
apps can show an in-app list, then delivered through OneSignal (when an
API key is configured) and through Expo for devices that registered an
Expo token. Delivery is best-effort: provider failures are logged and
reported in the result, never raised.
"""
import logging
from typing import Iterable, Optional

import requests
from django.conf import settings
from django.contrib.auth import get_user_model
from django.utils import timezone

from dispatch.models import Notification, PushToken, Facility

User = get_user_model()
logger = logging.getLogger('dispatch.notifications')

EXPO_TOKEN_PREFIXES = ('ExponentPushToken[', 'ExpoPushToken[')
MESSAGE_PREVIEW_LENGTH = 100

DISPATCHER_TEMPLATES = {
    'created': ('New Trip Request', 'New {kind} trip: {pickup}'),
    'approved': ('Trip Approved', 'Trip has been approved'),
    'upcoming': ('Trip Upcoming', 'A trip is now upcoming'),
    'completed': ('Trip Completed', 'A trip has been completed'),
    'cancelled': ('Trip Cancelled', 'A trip has been cancelled'),
    'driver_assigned': ('Driver Assigned', 'Driver has been assigned to a trip'),
    'updated': ('Trip Updated', 'A trip has been updated'),
    'message': ('New Message', '{facility}: {preview}'),
}
DISPATCHER_ALIASES = {'new': 'created', 'confirmed': 'approved', 'canceled': 'cancelled'}

DRIVER_TEMPLATES = {
    'assigned': ('New Trip Assigned', 'You have been assigned a trip to {place}', 'You have been assigned a new trip'),
    'unassigned': ('Trip Unassigned', 'You have been removed from a trip', None),
    'trip_updated': ('Trip Updated', 'Trip details have been updated. Please review.', None),
    'trip_cancelled': ('Trip Cancelled', 'A trip you were assigned to has been cancelled', None),
    'reminder': ('Trip Reminder', 'Your trip to {place} is coming up soon', 'You have an upcoming trip'),
}
DRIVER_ALIASES = {'trip_assigned': 'assigned'}

BOOKING_TEMPLATES = {
    'created': ('New Trip Created', 'A dispatcher has created a trip for you'),
    'approved': ('Trip Approved', 'Your trip has been approved and scheduled!'),
    'assigned': ('Driver Assigned', 'A driver has been assigned to your trip'),
    'in_progress': ('Trip In Progress', 'Your trip is now in progress'),
    'completed': ('Trip Completed', 'Your trip has been completed. Thank you for using our service!'),
    'cancelled': ('Trip Cancelled', 'Your trip has been cancelled'),
    'rejected': ('Trip Request Denied', 'Unfortunately, your trip request could not be accommodated at this time.'),
}
BOOKING_ALIASES = {'new': 'created', 'upcoming': 'approved'}


def _first_part(address: Optional[str]) -> str:
    return (address or '').split(',')[0].strip()


def truncate_preview(text: str, limit: int = MESSAGE_PREVIEW_LENGTH) -> str:
    text = text or ''
    return text[:limit] + '...' if len(text) > limit else text


def dispatcher_message(action: str, *, source: Optional[str] = None, details: Optional[dict] = None) -> tuple[str, str]:
    details = details or {}
    key = DISPATCHER_ALIASES.get(action, action)
    if key not in DISPATCHER_TEMPLATES:
        return 'Trip Notification', 'Trip status changed'
    title, body = DISPATCHER_TEMPLATES[key]
    return title, body.format(
        kind='individual' if source == 'booking_app' else 'facility',
        pickup=details.get('pickup_address') or 'Unknown location',
        facility=details.get('facility_name') or 'A facility',
        preview=details.get('message_preview') or 'New message',
    )


def driver_message(action: str, data: Optional[dict] = None) -> tuple[str, str]:
    key = DRIVER_ALIASES.get(action, action)
    if key not in DRIVER_TEMPLATES:
        return 'Trip Update', 'You have a trip update'
    title, body, fallback = DRIVER_TEMPLATES[key]
    place = _first_part((data or {}).get('pickupAddress'))
    if fallback is not None and not place:
        return title, fallback
    return title, body.format(place=place)


def booking_message(action: str) -> tuple[str, str]:
    key = BOOKING_ALIASES.get(action, action)
    return BOOKING_TEMPLATES.get(key, ('Trip Update', 'Your trip status has been updated'))


# ---------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------
def store_notifications(users: Iterable, *, app_type: str, notification_type: str, title: str, body: str, data: dict) -> int:
    rows = [
        Notification(user=u, app_type=app_type, notification_type=notification_type, title=title, body=body, data=data)
        for u in users
    ]
    Notification.objects.bulk_create(rows)
    return len(rows)


def send_onesignal(target: dict, title: str, body: str, data: dict) -> Optional[dict]:
    """POST one OneSignal notification. ``target`` holds ``filters`` or ``include_aliases``."""
    if not settings.ONESIGNAL_REST_API_KEY or not settings.ONESIGNAL_APP_ID:
        return None
    message = {
        'app_id': settings.ONESIGNAL_APP_ID,
        'headings': {'en': title},
        'contents': {'en': body},
        'data': data,
        'priority': 10,
        'ios_sound': 'default',
        **target,
    }
    try:
        r = requests.post(
            settings.ONESIGNAL_API_URL,
            json=message,
            headers={'Authorization': f'Key {settings.ONESIGNAL_REST_API_KEY}', 'Accept': 'application/json'},
            timeout=settings.PUSH_TIMEOUT,
        )
        return r.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning('OneSignal delivery failed: %s', e)
        return {'error': str(e)}


def send_expo(tokens: list[str], title: str, body: str, data: dict) -> dict:
    tokens = [t for t in tokens if t and t.startswith(EXPO_TOKEN_PREFIXES)]
    result = {'sent': 0, 'failed': 0, 'total': len(tokens)}
    if not tokens:
        return result
    messages = [
        {'to': t, 'sound': 'default', 'title': title, 'body': body, 'data': data, 'priority': 'high'}
        for t in tokens
    ]
    try:
        r = requests.post(settings.EXPO_PUSH_URL, json=messages, timeout=settings.PUSH_TIMEOUT)
        tickets = (r.json() or {}).get('data') or []
    except (requests.RequestException, ValueError, AttributeError) as e:
        logger.warning('Expo delivery failed for %d tokens: %s', len(tokens), e)
        result['failed'] = len(tokens)
        return result
    ok = sum(1 for t in tickets if isinstance(t, dict) and t.get('status') == 'ok')
    result['sent'] = ok
    result['failed'] = len(tokens) - ok
    return result


def _expo_tokens(users, app_type: str) -> list[str]:
    return list(
        PushToken.objects.filter(user__in=users, app_type=app_type, user__push_notifications_enabled=True)
        .values_list('push_token', flat=True)
    )


def _payload(action: Optional[str], trip_id=None, extra: Optional[dict] = None) -> dict:
    data = {'type': 'trip', 'action': action, 'timestamp': timezone.now().isoformat()}
    if trip_id is not None:
        data['tripId'] = str(trip_id)
    data.update(extra or {})
    return data


# ---------------------------------------------------------------------
# Audiences
# ---------------------------------------------------------------------
def notify_dispatchers(action: str, *, trip_id=None, source: Optional[str] = None, details: Optional[dict] = None) -> dict:
    title, body = dispatcher_message(action, source=source, details=details)
    notification_type = 'message' if action == 'message' else 'trip'
    data = _payload(action, trip_id, {'type': notification_type, 'source': source or 'unknown'})
    recipients = list(User.objects.filter(role__in=('dispatcher', 'admin'), is_active=True))
    stored = store_notifications(recipients, app_type=Notification.APP_DISPATCHER,
                                 notification_type=notification_type, title=title, body=body, data=data)
    onesignal = None
    if recipients:
        onesignal = send_onesignal(
            {'filters': [{'field': 'tag', 'key': 'app_type', 'relation': '=', 'value': 'dispatcher'}]},
            title, body, data,
        )
    expo = send_expo(_expo_tokens(recipients, Notification.APP_DISPATCHER), title, body, data)
    return {'success': True, 'title': title, 'body': body, 'stored': stored,
            'oneSignal': {'dispatchersNotified': len(recipients), 'result': onesignal}, 'expo': expo}


def notify_driver(driver, action: str, *, trip_id=None, title: Optional[str] = None, body: Optional[str] = None,
                  data: Optional[dict] = None) -> dict:
    data = data or {}
    if not title or not body:
        title, body = driver_message(action, data)
    payload = _payload(action, trip_id, data)
    stored = store_notifications([driver], app_type=Notification.APP_DRIVER,
                                 notification_type='trip', title=title, body=body, data=payload)
    onesignal = send_onesignal({'include_aliases': {'external_id': [str(driver.id)]}, 'target_channel': 'push'},
                               title, body, payload)
    expo = send_expo(_expo_tokens([driver], Notification.APP_DRIVER), title, body, payload)
    return {'success': True, 'title': title, 'body': body, 'stored': stored, 'oneSignal': onesignal, 'expo': expo}


def notify_booking_user(user, action: str, *, trip_id=None, title: Optional[str] = None, body: Optional[str] = None,
                        data: Optional[dict] = None) -> dict:
    if not title or not body:
        title, body = booking_message(action)
    payload = _payload(action, trip_id, data)
    stored = store_notifications([user], app_type=Notification.APP_BOOKING,
                                 notification_type='trip', title=title, body=body, data=payload)
    onesignal = send_onesignal({'include_aliases': {'external_id': [str(user.id)]}, 'target_channel': 'push'},
                               title, body, payload)
    expo = send_expo(_expo_tokens([user], Notification.APP_BOOKING), title, body, payload)
    return {'success': True, 'title': title, 'body': body, 'stored': stored, 'oneSignal': onesignal, 'expo': expo}


def notify_facility(facility: Facility, *, title: str, body: str, user=None, data: Optional[dict] = None) -> dict:
    """Notify one facility user, or every user of the facility when ``user`` is None."""
    payload = {**(data or {}), 'facilityId': str(facility.id), 'timestamp': timezone.now().isoformat()}
    if user is not None:
        recipients = [user]
        target = {'include_aliases': {'external_id': [str(user.id)]}, 'target_channel': 'push'}
    else:
        recipients = list(User.objects.filter(facility=facility, role='facility', is_active=True))
        target = {'filters': [{'field': 'tag', 'key': 'facility_id', 'relation': '=', 'value': str(facility.id)}]}
    stored = store_notifications(recipients, app_type=Notification.APP_FACILITY,
                                 notification_type=(data or {}).get('type', 'trip'), title=title, body=body, data=payload)
    onesignal = send_onesignal(target, title, body, payload)
    expo = send_expo(_expo_tokens(recipients, Notification.APP_FACILITY), title, body, payload)
    return {'success': True, 'stored': stored, 'oneSignal': onesignal, 'expo': expo}


def notify_new_message(*, conversation_id, sender_name: str, message: str, sender_role: str) -> dict:
    """Tell dispatchers about a facility message. Dispatcher-sent messages notify nobody."""
    if sender_role != 'facility':
        return {'success': True, 'skipped': True, 'message': 'No notifications needed for dispatcher-sent messages'}
    title = f'New Message from {sender_name or "a facility"}'
    body = truncate_preview(message)
    data = {'type': 'message', 'conversationId': str(conversation_id), 'timestamp': timezone.now().isoformat()}
    recipients = list(User.objects.filter(role__in=('dispatcher', 'admin'), is_active=True))
    stored = store_notifications(recipients, app_type=Notification.APP_DISPATCHER,
                                 notification_type='message', title=title, body=body, data=data)
    expo = send_expo(_expo_tokens(recipients, Notification.APP_DISPATCHER), title, body, data)
    return {'success': True, 'stored': stored, 'expo': expo}

"""
Push notification endpoints.

The ``send-*`` endpoints are called by the sibling booking, driver and
facility apps with the shared ``X-Service-Key`` header. The rest serve the
dispatcher's own in-app notification list.
"""
from __future__ import annotations

from django.contrib.auth import get_user_model
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from dispatch.models import Facility, Notification, PushToken
from dispatch.permissions import HasServiceKeyOrDispatcher, IsDispatcher
from dispatch.serializers.notifications import (
    BookingPushSerializer,
    DispatcherPushSerializer,
    DriverPushSerializer,
    FacilityPushSerializer,
    MessageNotificationSerializer,
    NotificationReadSerializer,
    PushTokenSerializer,
)
from dispatch.services import notifications

User = get_user_model()
NOTIFICATION_PAGE = 50


def _get_user(user_id, role: str, label: str):
    try:
        return User.objects.get(id=user_id, role=role)
    except User.DoesNotExist:
        raise NotFound(f'{label} not found')


@api_view(['POST'])
@permission_classes([HasServiceKeyOrDispatcher])
def send_dispatcher_push(request):
    s = DispatcherPushSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    return Response(notifications.notify_dispatchers(
        vd['action'], trip_id=vd.get('tripId') or None, source=vd.get('source'), details=vd.get('tripDetails'),
    ))


@api_view(['POST'])
@permission_classes([HasServiceKeyOrDispatcher])
def send_driver_push(request):
    s = DriverPushSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    driver = _get_user(vd['driverId'], User.ROLE_DRIVER, 'Driver')
    return Response(notifications.notify_driver(
        driver, vd['action'], trip_id=vd.get('tripId') or None,
        title=vd.get('title'), body=vd.get('body'), data=vd.get('data'),
    ))


@api_view(['POST'])
@permission_classes([HasServiceKeyOrDispatcher])
def send_facility_push(request):
    s = FacilityPushSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    try:
        facility = Facility.objects.get(id=vd['facilityId'])
    except Facility.DoesNotExist:
        raise NotFound('Facility not found')
    user = None
    if vd.get('userId'):
        user = _get_user(vd['userId'], User.ROLE_FACILITY, 'Facility user')
    return Response(notifications.notify_facility(
        facility, title=vd['title'], body=vd['body'], user=user, data=vd.get('data'),
    ))


@api_view(['POST'])
@permission_classes([HasServiceKeyOrDispatcher])
def send_booking_push(request):
    s = BookingPushSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    user = _get_user(vd['userId'], User.ROLE_CLIENT, 'Client')
    return Response(notifications.notify_booking_user(
        user, vd['action'], trip_id=vd.get('tripId') or None,
        title=vd.get('title'), body=vd.get('body'), data=vd.get('data'),
    ))


@api_view(['POST'])
@permission_classes([HasServiceKeyOrDispatcher])
def send_message_notification(request):
    s = MessageNotificationSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    return Response(notifications.notify_new_message(
        conversation_id=vd['conversationId'],
        sender_name=vd.get('senderName', ''),
        message=vd['message'],
        sender_role=vd['senderRole'],
    ))


# ---------------------------------------------------------------------
# Dispatcher in-app notifications
# ---------------------------------------------------------------------
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDispatcher])
def list_notifications(request):
    qs = Notification.objects.filter(user=request.user, app_type=Notification.APP_DISPATCHER)
    items = qs.order_by('-created_at')[:NOTIFICATION_PAGE]
    return Response({
        'success': True,
        'unread': qs.filter(read=False).count(),
        'notifications': [{
            'id': n.id,
            'type': n.notification_type,
            'title': n.title,
            'body': n.body,
            'data': n.data,
            'read': n.read,
            'created_at': n.created_at.isoformat(),
        } for n in items],
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDispatcher])
def mark_notifications_read(request):
    s = NotificationReadSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    qs = Notification.objects.filter(user=request.user, read=False)
    if not s.validated_data['all']:
        qs = qs.filter(id__in=s.validated_data.get('ids') or [])
    return Response({'success': True, 'updated': qs.update(read=True)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def register_push_token(request):
    s = PushTokenSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    PushToken.objects.update_or_create(
        user=request.user, app_type=vd['appType'],
        defaults={'push_token': vd['pushToken'], 'platform': vd.get('platform', '')},
    )
    return Response({'success': True})

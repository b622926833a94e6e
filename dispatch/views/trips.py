"""
Trip endpoints used by the dispatcher app.

``POST /api/trips/actions`` is the main entry point: approve, reject or
complete a trip. The other endpoints list, create and edit trips and
handle driver assignment.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from dispatch.permissions import IsDispatcher
from dispatch.serializers.trips import (
    AssignDriverSerializer,
    TripActionSerializer,
    TripCreateSerializer,
    TripIdSerializer,
    TripListQuerySerializer,
    TripRespondSerializer,
    TripUpdateSerializer,
)
from dispatch.services import trips as trip_service


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDispatcher])
def trip_actions(request):
    """Approve, reject or complete a trip.

    Body: ``{"tripId": uuid, "action": "approve"|"reject"|"complete", "reason"?: str}``.
    Approval of an individual booking with a saved card also charges it.
    A failed charge still approves the trip and is reported under
    ``payment`` with ``fallback: true``.
    """
    s = TripActionSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    result = trip_service.perform_trip_action(vd['tripId'], vd['action'], request.user, reason=vd.get('reason'))
    return Response(result)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsDispatcher])
def trips(request):
    if request.method == 'GET':
        return _trip_list(request)
    s = TripCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    trip = trip_service.create_trip(request.user, s.validated_data)
    return Response({'success': True, 'trip': trip_service.serialize_trip(trip)}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDispatcher])
def all_trips(request):
    return _trip_list(request)


def _trip_list(request):
    q = TripListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return Response(trip_service.list_all_trips(status=q.validated_data.get('status'),
                                                source=q.validated_data.get('source')))


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsDispatcher])
def trip_detail(request, trip_id):
    if request.method == 'GET':
        trip = trip_service.get_trip(trip_id)
        return Response({'success': True, 'trip': trip_service.serialize_trip(trip, expand=True)})
    s = TripUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    trip = trip_service.update_trip(trip_id, request.user, s.validated_data)
    return Response({'success': True, 'trip': trip_service.serialize_trip(trip, expand=True)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDispatcher])
def assign_driver(request):
    s = AssignDriverSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response(trip_service.assign_driver(s.validated_data['tripId'], s.validated_data['driverId'], request.user))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDispatcher])
def dispatcher_assign_trip(request):
    s = AssignDriverSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response(
        trip_service.dispatcher_assign_trip(s.validated_data['tripId'], s.validated_data['driverId'], request.user)
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDispatcher])
def dispatcher_complete_trip(request):
    s = TripIdSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response(trip_service.dispatcher_complete_trip(s.validated_data['tripId'], request.user))


@api_view(['POST'])
@permission_classes([AllowAny])
def trip_respond(request):
    """Driver accept/decline link target. Authorized by the signed token, not a session."""
    s = TripRespondSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response(trip_service.driver_respond(s.validated_data['token'], s.validated_data['action']))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDispatcher])
def send_reminder(request):
    s = TripIdSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response(trip_service.send_reminder(s.validated_data['tripId'], request.user))

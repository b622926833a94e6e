"""
Drivers, clients, facilities and dispatcher-created user accounts.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from dispatch.models import Facility, Trip, User
from dispatch.permissions import IsDispatcher
from dispatch.serializers.accounts import (
    ClientQuerySerializer,
    DeleteClientSerializer,
    DeleteDriverQuerySerializer,
    DeleteFacilitySerializer,
    DeleteManagedClientSerializer,
    DriverQuerySerializer,
    FacilitySerializer,
    ProfileUpdateSerializer,
    UserCreateSerializer,
)
from dispatch.services import accounts
from dispatch.services.trips import fix_driver_statuses, serialize_trip

RECENT_TRIPS = 20


# ---------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDispatcher])
def create_user(request):
    """Create a driver, client or facility account (or refresh an existing one with the same role)."""
    s = UserCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    user, created, initial_password = accounts.create_or_update_user(
        request.user,
        email=vd['email'],
        role=vd['role'],
        profile=vd['userProfile'],
        password=vd.get('password'),
        facility=vd.get('facilityId'),
    )
    label = vd['role'].capitalize()
    payload = {
        'success': True,
        'userId': user.id,
        'profile': accounts.serialize_user(user),
        'message': f"{label} created successfully" if created else f"{label} profile updated successfully",
    }
    if initial_password:
        payload['initialPassword'] = initial_password
    return Response(payload, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)


# ---------------------------------------------------------------------
# Drivers
# ---------------------------------------------------------------------
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDispatcher])
def list_drivers(request):
    q = DriverQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return Response({'success': True, 'drivers': accounts.list_drivers(status=q.validated_data.get('status'))})


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsDispatcher])
def driver_detail(request, driver_id):
    driver = accounts.get_user_with_role(driver_id, User.ROLE_DRIVER, 'Driver')
    if request.method == 'PUT':
        s = ProfileUpdateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        driver = accounts.update_profile(request.user, driver, s.validated_data)
    trips = Trip.objects.filter(driver=driver).order_by('-pickup_time')[:RECENT_TRIPS]
    return Response({
        'success': True,
        'driver': accounts.serialize_user(driver),
        'trips': [serialize_trip(t) for t in trips],
    })


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsDispatcher])
def delete_driver(request):
    q = DeleteDriverQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return Response(accounts.delete_driver(request.user, q.validated_data['driverId']))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDispatcher])
def fix_status(request):
    fixed = fix_driver_statuses(request.user)
    return Response({
        'success': True,
        'message': f"Fixed {len(fixed)} driver statuses",
        'fixedDrivers': fixed,
    })


# ---------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDispatcher])
def list_clients(request):
    q = ClientQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    return Response({'success': True, **accounts.list_clients(q=q.validated_data.get('q'))})


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsDispatcher])
def client_detail(request, client_id):
    client = accounts.get_user_with_role(client_id, User.ROLE_CLIENT, 'Client')
    if request.method == 'PUT':
        s = ProfileUpdateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        client = accounts.update_profile(request.user, client, s.validated_data)
    trips = Trip.objects.filter(user=client).order_by('-pickup_time')[:RECENT_TRIPS]
    return Response({
        'success': True,
        'client': accounts.serialize_user(client),
        'trips': [serialize_trip(t) for t in trips],
    })


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsDispatcher])
def delete_client(request):
    s = DeleteClientSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response(accounts.delete_client(request.user, s.validated_data['clientId']))


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsDispatcher])
def delete_managed_client(request):
    s = DeleteManagedClientSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response(accounts.delete_managed_client(request.user, s.validated_data['managedClientId']))


# ---------------------------------------------------------------------
# Facilities
# ---------------------------------------------------------------------
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsDispatcher])
def facilities(request):
    if request.method == 'POST':
        s = FacilitySerializer(data=request.data)
        s.is_valid(raise_exception=True)
        facility = accounts.save_facility(request.user, s.validated_data)
        return Response({'success': True, 'facility': accounts.serialize_facility(facility)},
                        status=status.HTTP_201_CREATED)
    qs = Facility.objects.order_by('name')
    return Response({'success': True, 'facilities': [accounts.serialize_facility(f) for f in qs]})


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsDispatcher])
def facility_detail(request, facility_id):
    facility = accounts.get_facility(facility_id)
    if request.method == 'PUT':
        s = FacilitySerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        facility = accounts.save_facility(request.user, s.validated_data, facility)
    return Response({'success': True, 'facility': accounts.facility_detail(facility)})


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsDispatcher])
def delete_facility(request):
    s = DeleteFacilitySerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response(accounts.delete_facility(request.user, s.validated_data['facilityId']))

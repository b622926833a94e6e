"""
Authentication views for the dispatcher app.

Login hands out both a DRF token (``Authorization: Token <key>``) and a
JWT pair. Only dispatchers and admins may sign in here; drivers, clients
and facility staff have their own apps.
"""
from __future__ import annotations

from django.conf import settings
from django.contrib.auth import authenticate
from django.db.models import Q
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken

from .models import User
from .permissions import BILLING_ROLES
from .serializers.auth import LoginSerializer, LogoutSerializer, RefreshSerializer, SignupSerializer
from .services.accounts import serialize_user
from .services.audit import log_action


class LoginRateThrottle(AnonRateThrottle):
    scope = 'login'


def _resolve_username(identifier: str) -> str:
    """Accept either the username or the account email."""
    user = User.objects.filter(Q(username__iexact=identifier) | Q(email__iexact=identifier)).first()
    return user.username if user else identifier


def _token_payload(user: User) -> dict:
    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    return {
        'success': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'role': user.role,
        'user': serialize_user(user),
    }


# ---------------------------------------------------------------------
# Username/password login
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def login_view(request):
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    identifier = s.validated_data['username']
    ip = request.META.get('REMOTE_ADDR')

    user = authenticate(request, username=_resolve_username(identifier), password=s.validated_data['password'])
    if not user:
        log_action(user=None, action='login', object_type='user',
                   detail={'result': 'fail', 'username': identifier, 'ip': ip})
        return Response({'success': False, 'error': 'Invalid login credentials'}, status=status.HTTP_400_BAD_REQUEST)
    if user.role not in BILLING_ROLES:
        log_action(user=user, action='login', object_type='user', object_id=user.id,
                   detail={'result': 'wrong_role', 'ip': ip})
        raise PermissionDenied('Access denied. This app is only for dispatchers.')

    log_action(user=user, action='login', object_type='user', object_id=user.id, detail={'result': 'ok', 'ip': ip})
    return Response(_token_payload(user))


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def signup_view(request):
    """Self-service dispatcher signup, only when ``DISPATCHER_SIGNUP_ENABLED`` is on."""
    if not settings.DISPATCHER_SIGNUP_ENABLED:
        raise PermissionDenied('Dispatcher signup is disabled. Ask an administrator for an account.')
    s = SignupSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    user = User(
        username=vd['email'],
        email=vd['email'],
        first_name=vd['first_name'],
        last_name=vd.get('last_name', ''),
        phone_number=vd.get('phone_number', ''),
        role=User.ROLE_DISPATCHER,
    )
    user.set_password(vd['password'])
    user.save()
    log_action(user=user, action='signup', object_type='user', object_id=user.id)
    return Response(_token_payload(user), status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    return Response({'success': True, 'user': serialize_user(request.user)})


# ---------------------------------------------------------------------
# JWT: refresh & logout
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from a refresh token."""
    s = RefreshSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    refresh = TokenRefreshSerializer(data={'refresh': s.validated_data['refresh']})
    try:
        refresh.is_valid(raise_exception=True)
    except TokenError as e:
        return Response({'success': False, 'error': str(e), 'code': 'token_not_valid'},
                        status=status.HTTP_401_UNAUTHORIZED)
    data = dict(refresh.validated_data)
    return Response({'success': True, 'jwt_access': data.pop('access'), **data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """Blacklist the given refresh token, or every outstanding one for the user."""
    s = LogoutSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    count = 0
    refresh = s.validated_data.get('refresh')
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
            count = 1
        except TokenError as e:
            return Response({'success': False, 'error': str(e), 'code': 'token_not_valid'},
                            status=status.HTTP_400_BAD_REQUEST)
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    Token.objects.filter(user=request.user).delete()
    log_action(user=request.user, action='logout', object_type='user', object_id=request.user.id,
               detail={'blacklisted': count})
    return Response({'success': True, 'blacklisted': count})

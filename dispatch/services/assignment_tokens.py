"""Signed accept/decline links sent to drivers with a trip assignment."""
from django.conf import settings
from django.core import signing
from rest_framework.exceptions import PermissionDenied, ValidationError

SALT = 'dispatch.trip-assignment'


def make_assignment_token(trip_id, driver_id) -> str:
    return signing.dumps({'tripId': str(trip_id), 'driverId': str(driver_id)}, salt=SALT, compress=True)


def read_assignment_token(token: str) -> dict:
    try:
        data = signing.loads(token, salt=SALT, max_age=settings.ASSIGNMENT_TOKEN_MAX_AGE)
    except signing.SignatureExpired:
        raise PermissionDenied('This assignment link has expired')
    except signing.BadSignature:
        raise ValidationError('Invalid assignment link')
    if not isinstance(data, dict) or not data.get('tripId') or not data.get('driverId'):
        raise ValidationError('Invalid assignment link')
    return data

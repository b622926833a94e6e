import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler, set_rollback

logger = logging.getLogger('dispatch.api')


class InvalidStatusTransition(APIException):
    """The trip (or invoice) is not in a status that allows the action."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Status does not allow this action.'
    default_code = 'invalid_transition'


class UpstreamServiceError(APIException):
    """A sibling service (booking app, push provider) answered with an error."""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'Upstream service failed.'
    default_code = 'upstream_error'


def _message(data):
    if isinstance(data, dict):
        if 'detail' in data:
            return _message(data['detail'])
        if 'error' in data:
            return _message(data['error'])
        if len(data) == 1:
            field, errors = next(iter(data.items()))
            if field == 'non_field_errors':
                return _message(errors)
            return f"{field}: {_message(errors)}"
        return 'Invalid input'
    if isinstance(data, list):
        return _message(data[0]) if data else 'Invalid input'
    return str(data)


def api_exception_handler(exc, context):
    request = context.get('request')
    request_id = getattr(request, 'request_id', None)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        set_rollback()
        logger.exception('unhandled error in %s', getattr(context.get('view'), '__name__', context.get('view')))
        return Response(
            {'success': False, 'error': 'Internal server error', 'code': 'server_error', 'requestId': request_id},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    # normalize response
    codes = exc.get_codes() if isinstance(exc, APIException) else None
    payload = {
        'success': False,
        'error': _message(resp.data),
        'code': codes if isinstance(codes, str) else 'invalid',
        'requestId': request_id,
    }
    if isinstance(resp.data, dict) and 'detail' not in resp.data:
        payload['details'] = resp.data
    resp.data = payload
    return resp

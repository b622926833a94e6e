import logging
import threading
import uuid

from django.http import JsonResponse

_local = threading.local()


def current_request_id() -> str:
    return getattr(_local, 'request_id', '-')


class RequestIdFilter(logging.Filter):
    """Stamp every log record with the id of the request being served."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = current_request_id()
        return True


class RequestIdMiddleware:
    """Accept or mint an ``X-Request-ID`` and echo it on the response."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        rid = (request.headers.get('X-Request-ID') or '').strip()[:64] or uuid.uuid4().hex
        request.request_id = rid
        _local.request_id = rid
        try:
            response = self.get_response(request)
        finally:
            _local.request_id = '-'
        response['X-Request-ID'] = rid
        return response


class RetiredEndpointMiddleware:
    """Return 410 for the diagnostic and duplicate trip-action routes that were removed."""
    RETIRED_PREFIXES = ('/api/debug', '/api/test-actions', '/api/trips/simple-actions')

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        path = request.path or ''
        if any(path.startswith(p) for p in self.RETIRED_PREFIXES):
            return JsonResponse(
                {'success': False, 'error': 'This endpoint has been removed. Use /api/trips/actions instead.',
                 'code': 'gone', 'requestId': getattr(request, 'request_id', None)},
                status=410,
            )
        return self.get_response(request)

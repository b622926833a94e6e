import logging

from django.db import DatabaseError, connections
from django.http import JsonResponse

logger = logging.getLogger('dispatch.api')


def healthz(request):
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
        return JsonResponse({'success': True, 'db': bool(row and row[0] == 1)})
    except DatabaseError as e:
        logger.error('health check failed: %s', e)
        return JsonResponse({'success': False, 'error': 'database unavailable'}, status=500)

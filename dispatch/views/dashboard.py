from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from dispatch.permissions import IsDispatcher
from dispatch.services.dashboard import trip_dashboard


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDispatcher])
def dashboard(request):
    """Trip counts by status, today's trips, pending approvals and driver availability.

    Cached briefly; ``?refresh=1`` recomputes.
    """
    refresh = request.query_params.get('refresh') in ('1', 'true')
    return Response({'success': True, **trip_dashboard(refresh=refresh)})

from datetime import datetime, time, timedelta

from django.conf import settings
from django.core.cache import cache
from django.db.models import Count
from django.utils import timezone

from dispatch.models import Trip, User
from dispatch.services.realtime import DASHBOARD_CACHE_KEY


def compute_trip_dashboard() -> dict:
    counts = dict(Trip.objects.values_list('status').annotate(n=Count('id')).order_by())
    today = timezone.localdate()
    start = timezone.make_aware(datetime.combine(today, time.min))
    end = start + timedelta(days=1)
    drivers = dict(
        User.objects.filter(role=User.ROLE_DRIVER, is_active=True)
        .values_list('status').annotate(n=Count('id')).order_by()
    )
    return {
        'byStatus': {key: counts.get(key, 0) for key, _ in Trip.STATUS_CHOICES},
        'total': sum(counts.values()),
        'pendingApprovals': counts.get(Trip.STATUS_PENDING, 0),
        'todayTrips': Trip.objects.filter(pickup_time__gte=start, pickup_time__lt=end)
                                  .exclude(status=Trip.STATUS_CANCELLED).count(),
        'unassignedUpcoming': Trip.objects.filter(status=Trip.STATUS_UPCOMING, driver__isnull=True).count(),
        'drivers': {key: drivers.get(key, 0) for key, _ in User.STATUS_CHOICES},
        'generatedAt': timezone.now().isoformat(),
    }


def trip_dashboard(refresh: bool = False) -> dict:
    if not refresh:
        cached = cache.get(DASHBOARD_CACHE_KEY)
        if cached:
            return cached
    payload = compute_trip_dashboard()
    cache.set(DASHBOARD_CACHE_KEY, payload, settings.DASHBOARD_CACHE_TTL)
    return payload

from django.core.management.base import BaseCommand
from django.utils import timezone

from dispatch.services.dashboard import trip_dashboard
from dispatch.services.realtime import DASHBOARD_CACHE_KEY, broadcast_refresh


class Command(BaseCommand):
    help = "Recompute the cached trip dashboard and tell connected dispatcher screens to refresh."

    def handle(self, *args, **options):
        payload = trip_dashboard(refresh=True)
        broadcast_refresh([DASHBOARD_CACHE_KEY])
        self.stdout.write(self.style.SUCCESS(
            f"Refreshed {DASHBOARD_CACHE_KEY} ({payload['total']} trips) at {timezone.now()}"
        ))

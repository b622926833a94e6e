from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.cache import cache
from django.db import transaction
from django.utils import timezone

TRIPS_GROUP = "trips"
DASHBOARD_CACHE_KEY = "dashboard:trips"


def _send(event: dict) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is not None:
        async_to_sync(channel_layer.group_send)(TRIPS_GROUP, event)


def invalidate_dashboard() -> None:
    """Drop cached dashboard stats now and again once the surrounding transaction commits.

    A dashboard read racing the write can re-cache the old rows; the second
    delete clears whatever it stored.
    """
    cache.delete(DASHBOARD_CACHE_KEY)
    transaction.on_commit(lambda: cache.delete(DASHBOARD_CACHE_KEY), robust=True)


def broadcast_trip_event(trip, action: str) -> None:
    """Invalidate dashboard stats; push ``trip.update`` to websocket clients after commit."""
    invalidate_dashboard()
    event = {
        "type": "trip.update",
        "tripId": str(trip.id),
        "status": trip.status,
        "action": action,
        "ts": timezone.now().isoformat(),
    }
    transaction.on_commit(lambda: _send(event), robust=True)


def broadcast_refresh(keys: list[str]) -> None:
    now = timezone.now()
    _send({"type": "broadcast.refresh", "version": int(now.timestamp()), "ts": now.isoformat(), "keys": keys[:50]})

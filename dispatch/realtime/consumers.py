import json

from channels.generic.websocket import AsyncWebsocketConsumer

from dispatch.services.realtime import TRIPS_GROUP


class TripUpdatesConsumer(AsyncWebsocketConsumer):
    """Pushes ``trip.update`` events so dispatcher screens refresh without polling."""
    GROUP = TRIPS_GROUP

    async def connect(self):
        await self.channel_layer.group_add(self.GROUP, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(self.GROUP, self.channel_name)

    async def trip_update(self, event):
        # event: {"type": "trip.update", "tripId": "...", "status": "...", "action": "...", "ts": "..."}
        await self.send(json.dumps(event))

    async def broadcast_refresh(self, event):
        await self.send(json.dumps(event))

import json
from channels.generic.websocket import AsyncWebsocketConsumer

from ..conf import dispatch_setting


class OccurrenceEventsConsumer(AsyncWebsocketConsumer):
    """Streams dispatch domain events to authenticated dashboards."""

    async def connect(self):
        user = self.scope.get("user")
        if not (user and user.is_authenticated):
            await self.close()
            return
        self.group = dispatch_setting("EVENTS_GROUP")
        await self.channel_layer.group_add(self.group, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        group = getattr(self, "group", None)
        if group:
            await self.channel_layer.group_discard(group, self.channel_name)

    async def occurrence_event(self, event):
        # event: {"type": "occurrence.event", "event": "slot.claimed", "data": {...}}
        await self.send(json.dumps({"event": event["event"], "data": event["data"]}))

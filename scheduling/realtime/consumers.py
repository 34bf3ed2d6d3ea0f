import json
from channels.generic.websocket import AsyncWebsocketConsumer

from scheduling.services.notify import REMINDERS_GROUP, UPDATES_GROUP


class UpdatesConsumer(AsyncWebsocketConsumer):
    GROUPS = (UPDATES_GROUP, REMINDERS_GROUP)

    async def connect(self):
        for group in self.GROUPS:
            await self.channel_layer.group_add(group, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        for group in self.GROUPS:
            await self.channel_layer.group_discard(group, self.channel_name)

    async def appointment_booked(self, event):
        # event: {"type": "appointment.booked", "appointmentId": int, "doctorId": int, "date": ..., "time": ...}
        await self.send(json.dumps(event))

    async def reminders_due(self, event):
        # event: {"type": "reminders.due", "date": ..., "time": ..., "appointments": [...]}
        await self.send(json.dumps(event))

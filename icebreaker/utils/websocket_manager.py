import json
import logging
from typing import Any, Dict, List

from fastapi import WebSocket

from icebreaker.utils.realtime_bus import get_bus


logger = logging.getLogger(__name__)


class ConnectionManager:

    def __init__(self) -> None:
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, user_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        if user_id not in self.active_connections:
            self.active_connections[user_id] = []
        self.active_connections[user_id].append(websocket)

    def disconnect(self, user_id: str, websocket: WebSocket) -> None:
        if user_id in self.active_connections:
            try:
                self.active_connections[user_id].remove(websocket)
            except ValueError:
                pass
            if not self.active_connections[user_id]:
                del self.active_connections[user_id]

    def is_connected(self, user_id: str) -> bool:
        return bool(self.active_connections.get(user_id))

    async def send_personal_message(self, receiver_id: str, message: str) -> int:
        sent = 0
        for conn in list(self.active_connections.get(receiver_id, [])):
            await conn.send_text(message)
            sent += 1
        return sent

    async def send_event(self, receiver_id: str, event: Dict[str, Any]) -> bool:
        """Fan an event out to every socket of ``receiver_id``.

        Goes through the Redis bus when it is enabled so that sockets held by
        other workers receive it too. Returns True when the receiver is known
        to be reachable.
        """
        payload = json.dumps(event, default=str)
        bus = await get_bus()
        if bus.enabled:
            await bus.publish(f"user:{receiver_id}", payload)
            online = await bus.is_online(receiver_id)
            return bool(online) or self.is_connected(receiver_id)
        return await self.send_personal_message(receiver_id, payload) > 0


manager = ConnectionManager()

# leave_mgmt/notifications/realtime.py
"""
In-process WebSocket hub used to push new notifications to connected browsers.

Routes run in FastAPI's thread pool, so ``emit`` hands the coroutine to the
event loop that accepted the sockets with ``run_coroutine_threadsafe``.
Delivery is fire-and-forget: dead sockets are dropped and errors are logged.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, Optional, Set

log = logging.getLogger(__name__)


def user_room(user_id: int) -> str:
    return f"user_{user_id}"


def role_room(role: str) -> str:
    return f"role_{str(role).lower()}"


class NotificationHub:
    def __init__(self):
        self._rooms: Dict[str, Set[Any]] = defaultdict(set)
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def connect(self, websocket, user_id: int, role: str):
        self._loop = asyncio.get_running_loop()
        self._rooms[user_room(user_id)].add(websocket)
        self._rooms[role_room(role)].add(websocket)
        log.info("Websocket joined rooms %s, %s", user_room(user_id), role_room(role))

    def disconnect(self, websocket):
        for name in list(self._rooms):
            self._rooms[name].discard(websocket)
            if not self._rooms[name]:
                del self._rooms[name]

    def connection_count(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    async def send_to_room(self, room: str, event: str, payload: Dict[str, Any]) -> int:
        sent = 0
        for ws in list(self._rooms.get(room, ())):
            try:
                await ws.send_json({"event": event, "data": payload})
                sent += 1
            except Exception:
                log.warning("Dropping websocket in %s after failed send", room, exc_info=True)
                self.disconnect(ws)
        return sent

    def emit(self, room: str, event: str, payload: Dict[str, Any]) -> bool:
        """Schedule a push from sync code. Returns False when nobody is listening."""
        if not self._rooms.get(room) or self._loop is None or self._loop.is_closed():
            return False
        try:
            asyncio.run_coroutine_threadsafe(self.send_to_room(room, event, payload), self._loop)
            return True
        except Exception:
            log.exception("Failed to schedule realtime event %s for %s", event, room)
            return False


hub = NotificationHub()

import asyncio
from typing import Any, Dict, Optional, Set

import anyio
import structlog
from fastapi import WebSocket

log = structlog.get_logger(__name__)

GLOBAL_GROUP = "global"

EVENT_NEW_ORDER = "newOrder"
EVENT_UPDATE_ORDER = "updateOrder"
EVENT_DELETE_ORDER = "deleteOrder"
EVENT_PASSWORD_CHANGE = "passwordChange"


class EventBroadcaster:
    """Fans lifecycle events out to connected WebSocket clients.

    Every client joins the global group plus a channel keyed by its own user id.
    Delivery is best-effort: sockets that fail are dropped and nothing is replayed.
    """

    def __init__(self) -> None:
        # channel -> set of WebSocket connections
        self._channels: Dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, user_id: str, ws: WebSocket) -> None:
        async with self._lock:
            self._channels.setdefault(GLOBAL_GROUP, set()).add(ws)
            self._channels.setdefault(user_id, set()).add(ws)

    async def disconnect(self, user_id: str, ws: WebSocket) -> None:
        async with self._lock:
            for channel in (GLOBAL_GROUP, user_id):
                conns = self._channels.get(channel)
                if conns is not None:
                    conns.discard(ws)
                    if not conns:
                        self._channels.pop(channel, None)

    async def connection_count(self) -> int:
        async with self._lock:
            return len(self._channels.get(GLOBAL_GROUP, set()))

    async def _send(self, channel: str, event: str, payload: Any) -> int:
        data = {"event": event, "data": payload}
        async with self._lock:
            targets = list(self._channels.get(channel, set()))
        delivered = 0
        dead = []
        for ws in targets:
            try:
                await ws.send_json(data)
                delivered += 1
            except Exception as e:
                log.info("broadcast_drop", event_name=event, channel=channel, error=str(e))
                dead.append(ws)
        if dead:
            async with self._lock:
                for conns in self._channels.values():
                    conns.difference_update(dead)
        return delivered

    async def broadcast(self, event: str, payload: Any) -> int:
        return await self._send(GLOBAL_GROUP, event, payload)

    async def send_to_user(self, user_id: str, event: str, payload: Any) -> int:
        return await self._send(user_id, event, payload)

    def publish(self, event: str, payload: Any, user_id: Optional[str] = None) -> None:
        """Emit from a sync request handler running on the worker thread pool."""

        async def _emit():
            if user_id is None:
                await self.broadcast(event, payload)
            else:
                await self.send_to_user(user_id, event, payload)

        try:
            anyio.from_thread.run(_emit)
        except Exception as e:
            log.warning("broadcast_failed", event_name=event, error=str(e))

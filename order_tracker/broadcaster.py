"""
Realtime fan-out of order events to every connected WebSocket client.

Delivery is best effort: nothing is queued for clients that are offline, and
a client whose send fails is dropped from the live set without affecting the
others. Clients reconcile by refetching after they reconnect.

Messages::

    {"type": "connected", "message": "..."}
    {"type": "order_create", "order": {...}}
    {"type": "order_update", "order": {...}}
    {"type": "order_delete", "orderId": 42}
"""

import json
import logging
from typing import Any, Dict, List, Protocol

from fastapi import Request

from .schemas import order_payload

logger = logging.getLogger(__name__)

CONNECTED_MESSAGE = {"type": "connected", "message": "تم الاتصال بنجاح"}


class Connection(Protocol):
    async def send_text(self, data: str) -> None: ...


class OrderBroadcaster:
    def __init__(self):
        # Keyed by id() so any connection object works, hashable or not.
        self._clients: Dict[int, Connection] = {}

    @property
    def clients(self) -> List[Connection]:
        return list(self._clients.values())

    def __len__(self):
        return len(self._clients)

    async def connect(self, websocket: Connection):
        """Register an opened connection and greet it."""
        self._clients[id(websocket)] = websocket
        logger.info("[WebSocket] New client connected. Total clients: %d", len(self._clients))
        if not await self._send(websocket, json.dumps(CONNECTED_MESSAGE, ensure_ascii=False)):
            self.disconnect(websocket)

    def disconnect(self, websocket: Connection):
        if self._clients.pop(id(websocket), None) is not None:
            logger.info("[WebSocket] Client disconnected. Total clients: %d", len(self._clients))

    async def _send(self, websocket: Connection, text: str) -> bool:
        try:
            await websocket.send_text(text)
        except Exception as e:
            logger.warning("[WebSocket] Send failed, dropping client: %r", e)
            return False
        return True

    async def broadcast(self, message: Dict[str, Any]) -> int:
        """Send ``message`` to every live client; returns how many received it."""
        text = json.dumps(message, ensure_ascii=False)
        snapshot = self.clients
        sent = 0

        # Iterate over a snapshot; failed clients are removed as we go.
        for websocket in snapshot:
            if await self._send(websocket, text):
                sent += 1
            else:
                self.disconnect(websocket)

        logger.info("[WebSocket] Sent %s to %d/%d clients", message.get("type"), sent, len(snapshot))
        return sent

    async def _publish(self, event_type: str, build) -> int:
        # Callers have already committed; a fan-out fault must not reach them.
        try:
            return await self.broadcast({"type": event_type, **build()})
        except Exception:
            logger.exception("[WebSocket] Broadcast of %s failed", event_type)
            return 0

    async def broadcast_order_create(self, order) -> int:
        return await self._publish("order_create", lambda: {"order": _as_payload(order)})

    async def broadcast_order_update(self, order) -> int:
        return await self._publish("order_update", lambda: {"order": _as_payload(order)})

    async def broadcast_order_delete(self, order_id: int) -> int:
        return await self._publish("order_delete", lambda: {"orderId": order_id})


def _as_payload(order) -> Dict[str, Any]:
    if isinstance(order, dict):
        return order
    return order_payload(order)


def get_broadcaster(request: Request) -> OrderBroadcaster:
    return request.app.state.broadcaster

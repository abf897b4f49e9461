"""In-process WebSocket connection manager."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import WebSocket

from rental_chat.infrastructure.ws.protocol import WsOutbound

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks open sockets and which conversations each one follows."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, set[WebSocket]] = {}

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        logger.debug("WS connected (conversations=%d)", len(self._subscriptions))

    def disconnect(self, ws: WebSocket) -> None:
        for conversation_id in list(self._subscriptions):
            self.unsubscribe(ws, conversation_id)
        logger.debug("WS disconnected")

    def subscribe(self, ws: WebSocket, conversation_id: str) -> None:
        self._subscriptions.setdefault(conversation_id, set()).add(ws)

    def unsubscribe(self, ws: WebSocket, conversation_id: str) -> None:
        subs = self._subscriptions.get(conversation_id)
        if subs:
            subs.discard(ws)
            if not subs:
                del self._subscriptions[conversation_id]

    def subscriber_count(self, conversation_id: str) -> int:
        return len(self._subscriptions.get(conversation_id, ()))

    async def broadcast_to_conversation(
        self,
        conversation_id: str,
        event_type: str,
        data: dict[str, Any],
    ) -> None:
        """Send a WS message to every socket subscribed to a conversation."""
        raw = WsOutbound(type=event_type, data=data).model_dump_json()
        dead: list[WebSocket] = []
        for ws in list(self._subscriptions.get(conversation_id, ())):
            try:
                await ws.send_text(raw)
            except Exception:
                dead.append(ws)
        for ws in dead:
            self.disconnect(ws)


class LocalFanoutPublisher:
    """EventPublisher that delivers straight to this process's sockets."""

    def __init__(self, manager: ConnectionManager) -> None:
        self._manager = manager

    async def publish(self, conversation_id: str, event_type: str, data: dict[str, Any]) -> None:
        await self._manager.broadcast_to_conversation(conversation_id, event_type, data)

"""Push channel over the chat API's ``/ws`` endpoint."""
from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Callable
from urllib.parse import urlencode

import websockets
from pydantic import ValidationError as PydanticValidationError
from websockets.exceptions import WebSocketException

from rental_chat.application.exceptions import ChannelError
from rental_chat.application.ports.auth import AuthProvider
from rental_chat.domain.entities.message import Message
from rental_chat.infrastructure.bus.serializer import message_from_dict
from rental_chat.infrastructure.ws.protocol import MESSAGE_CREATED, WsInbound, WsOutbound

logger = logging.getLogger(__name__)


class WebSocketChannel:
    """One WebSocket connection per ``stream()`` call, subscribed to one conversation."""

    def __init__(
        self,
        url: str,
        auth: AuthProvider,
        *,
        open_timeout: float = 10.0,
        connect: Callable[..., Any] = websockets.connect,
    ) -> None:
        self._url = url
        self._auth = auth
        self._open_timeout = open_timeout
        self._connect = connect

    async def _address(self) -> str:
        principal = await self._auth.current_principal()
        if not principal.token:
            return self._url
        sep = "&" if "?" in self._url else "?"
        return f"{self._url}{sep}{urlencode({'token': principal.token})}"

    async def stream(self, conversation_id: str) -> AsyncIterator[Message]:
        if not self._url:
            raise ChannelError("push endpoint is not configured")
        address = await self._address()
        try:
            async with self._connect(address, open_timeout=self._open_timeout) as ws:
                await ws.send(
                    WsInbound(
                        type="subscribe", data={"conversation_id": conversation_id},
                    ).model_dump_json()
                )
                logger.debug("WS subscribed to conversation %s", conversation_id)
                async for raw in ws:
                    message = decode_push(raw, conversation_id)
                    if message is not None:
                        yield message
        except (WebSocketException, OSError, TimeoutError) as exc:
            raise ChannelError(f"websocket failed: {exc}") from exc
        raise ChannelError("websocket closed by server")


def decode_push(raw: str | bytes, conversation_id: str) -> Message | None:
    """Extract a message for ``conversation_id`` from a server envelope, or None."""
    try:
        envelope = WsOutbound.model_validate_json(raw)
    except PydanticValidationError:
        logger.debug("Dropping malformed WS frame: %r", raw)
        return None
    if envelope.type != MESSAGE_CREATED:
        return None
    message = message_from_dict(envelope.data.get("message", envelope.data))
    if message is None or message.conversation_id != conversation_id:
        return None
    return message

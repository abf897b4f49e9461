"""WebSocket message envelope models."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel

MESSAGE_CREATED = "message.created"


class WsInbound(BaseModel):
    """Client → Server."""

    type: str  # subscribe | unsubscribe | ping
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server → Client."""

    type: str  # message.created | subscribed | error | pong
    data: dict[str, Any] = {}

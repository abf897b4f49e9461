from __future__ import annotations

import json
from dataclasses import dataclass, field

import pytest

from rental_chat.infrastructure.ws.manager import ConnectionManager, LocalFanoutPublisher


@dataclass(eq=False)
class FakeWebSocket:
    broken: bool = False
    accepted: bool = False
    sent: list[str] = field(default_factory=list)

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, raw: str) -> None:
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(raw)


@pytest.mark.asyncio
async def test_broadcast_reaches_only_subscribers():
    manager = ConnectionManager()
    a, b = FakeWebSocket(), FakeWebSocket()
    await manager.connect(a)
    await manager.connect(b)
    manager.subscribe(a, "42")
    manager.subscribe(b, "7")

    await LocalFanoutPublisher(manager).publish("42", "message.created", {"listing_id": "42"})

    assert a.accepted
    assert [json.loads(raw) for raw in a.sent] == [{"type": "message.created", "data": {"listing_id": "42"}}]
    assert b.sent == []


@pytest.mark.asyncio
async def test_dead_sockets_are_dropped():
    manager = ConnectionManager()
    dead = FakeWebSocket(broken=True)
    manager.subscribe(dead, "42")

    await manager.broadcast_to_conversation("42", "message.created", {})

    assert manager.subscriber_count("42") == 0


def test_unsubscribe_and_disconnect():
    manager = ConnectionManager()
    ws = FakeWebSocket()
    manager.subscribe(ws, "1")
    manager.subscribe(ws, "2")

    manager.unsubscribe(ws, "1")
    assert manager.subscriber_count("1") == 0
    assert manager.subscriber_count("2") == 1

    manager.disconnect(ws)
    assert manager.subscriber_count("2") == 0

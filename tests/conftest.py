"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator

import pytest

from rental_chat.application.dto.message import SendMessageDTO
from rental_chat.application.dto.principal import Principal
from rental_chat.application.exceptions import (
    ChannelError,
    HistoryUnavailableError,
    SendFailedError,
)
from rental_chat.domain.entities.message import Message
from rental_chat.infrastructure.auth.session_auth import SessionAuth

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

_ids = itertools.count(1000)


@pytest.fixture
def user_principal() -> Principal:
    return Principal(user_id="u-42", token="tok-42")


@pytest.fixture
def auth(user_principal) -> SessionAuth:
    return SessionAuth(user_principal)


def make_message(
    *,
    message_id: str | int | None = None,
    conversation_id: str = "42",
    sender_id: str = "u-7",
    content: str = "hello",
    created_at: datetime = T0,
    attachment_url: str | None = None,
) -> Message:
    return Message(
        id=str(message_id if message_id is not None else next(_ids)),
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=content,
        created_at=created_at,
        attachment_url=attachment_url,
    )


async def drain(rounds: int = 10) -> None:
    """Let background tasks run until they block."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@dataclass
class FakeClock:
    current: datetime = T0

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current = self.current + timedelta(seconds=seconds)


@dataclass
class FakeHistorySource:
    messages: list[Message] = field(default_factory=list)
    fail: bool = False
    gate: asyncio.Event | None = None
    calls: list[tuple[str, Principal]] = field(default_factory=list)

    async def fetch(self, conversation_id: str, principal: Principal) -> list[Message]:
        self.calls.append((conversation_id, principal))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise HistoryUnavailableError("source down")
        return [m for m in self.messages if m.conversation_id == conversation_id]


@dataclass
class FakeChannel:
    """Push channel fed by ``push()``; one queue per conversation."""

    queues: dict[str, asyncio.Queue] = field(default_factory=dict)
    opened: list[str] = field(default_factory=list)
    closed: list[str] = field(default_factory=list)

    def _queue(self, conversation_id: str) -> asyncio.Queue:
        return self.queues.setdefault(conversation_id, asyncio.Queue())

    def push(self, conversation_id: str, item: Message | Exception) -> None:
        self._queue(conversation_id).put_nowait(item)

    async def stream(self, conversation_id: str) -> AsyncIterator[Message]:
        self.opened.append(conversation_id)
        queue = self._queue(conversation_id)
        try:
            while True:
                item = await queue.get()
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            self.closed.append(conversation_id)


@dataclass
class FakeSender:
    """Answers sends with a durable copy, or fails / stays silent on demand."""

    clock: FakeClock
    fail: bool = False
    with_body: bool = True
    gate: asyncio.Event | None = None
    next_id: int = 1
    sent: list[SendMessageDTO] = field(default_factory=list)

    async def send(self, dto: SendMessageDTO, principal: Principal) -> Message | None:
        self.sent.append(dto)
        created_at = self.clock.now()
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise SendFailedError("backend rejected")
        if not self.with_body:
            return None
        message_id = str(self.next_id)
        self.next_id += 1
        return Message(
            id=message_id,
            conversation_id=dto.conversation_id,
            sender_id=principal.user_id or "",
            content=dto.content,
            created_at=created_at,
            attachment_url=dto.attachment_url,
        )


@dataclass
class FakeUploader:
    uploads: list[tuple[str, bytes, str]] = field(default_factory=list)

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        self.uploads.append((key, data, content_type))
        return f"https://cdn.test/{key}"


@dataclass
class FakeMessageReader:
    _messages: list[Message] = field(default_factory=list)

    async def list_messages(self, conversation_id: str, *, limit: int = 500) -> list[Message]:
        found = [m for m in self._messages if m.conversation_id == conversation_id]
        return sorted(found, key=lambda m: m.created_at)[:limit]


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader
    clock: FakeClock = field(default_factory=FakeClock)

    async def create(
        self,
        conversation_id: str,
        sender_id: str,
        content: str,
        attachment_url: str | None,
    ) -> Message:
        msg = Message(
            id=str(len(self._reader._messages) + 1),
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            created_at=self.clock.now(),
            attachment_url=attachment_url,
        )
        self._reader._messages.append(msg)
        return msg


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    _committed: bool = False

    def __post_init__(self) -> None:
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages)

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self._committed = True

    async def rollback(self) -> None:
        pass


@dataclass
class RecordingPublisher:
    events: list[tuple[str, str, dict[str, Any]]] = field(default_factory=list)
    fail: bool = False

    async def publish(self, conversation_id: str, event_type: str, data: dict[str, Any]) -> None:
        if self.fail:
            raise ChannelError("bus down")
        self.events.append((conversation_id, event_type, data))

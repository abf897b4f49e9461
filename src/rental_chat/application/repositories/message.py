from __future__ import annotations

from typing import Protocol

from rental_chat.domain.entities.message import Message


class MessageReader(Protocol):
    async def list_messages(self, conversation_id: str, *, limit: int = 500) -> list[Message]: ...


class MessageWriter(Protocol):
    async def create(
        self,
        conversation_id: str,
        sender_id: str,
        content: str,
        attachment_url: str | None,
    ) -> Message:
        """Insert a message and return it with its durable id and timestamp."""
        ...

from __future__ import annotations

from typing import Protocol

from rental_chat.application.dto.message import SendMessageDTO
from rental_chat.application.dto.principal import Principal
from rental_chat.domain.entities.message import Message


class MessageSender(Protocol):
    async def send(self, dto: SendMessageDTO, principal: Principal) -> Message | None:
        """Persist a message. Return the durable copy when the backend echoes one.

        Raise SendFailedError on any failure.
        """
        ...

from __future__ import annotations

from typing import Protocol

from rental_chat.application.dto.principal import Principal
from rental_chat.domain.entities.message import Message


class HistorySource(Protocol):
    async def fetch(self, conversation_id: str, principal: Principal) -> list[Message]:
        """Return durable history. Raise HistoryUnavailableError when the source can't answer."""
        ...

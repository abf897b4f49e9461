from __future__ import annotations

from typing import AsyncIterator, Protocol

from rental_chat.domain.entities.message import Message


class LiveChannel(Protocol):
    def stream(self, conversation_id: str) -> AsyncIterator[Message]:
        """Yield messages pushed for one conversation until the iterator is closed.

        Raise ChannelError when the underlying subscription drops.
        """
        ...

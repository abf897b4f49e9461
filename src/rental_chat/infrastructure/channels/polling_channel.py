"""Push channel emulated by re-reading history on an interval."""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from rental_chat.application.ports.auth import AuthProvider
from rental_chat.domain.entities.message import Message
from rental_chat.services.history_loader import HistoryLoader

logger = logging.getLogger(__name__)


class PollingChannel:
    def __init__(self, loader: HistoryLoader, auth: AuthProvider, interval: float = 5.0) -> None:
        self._loader = loader
        self._auth = auth
        self._interval = interval

    async def stream(self, conversation_id: str) -> AsyncIterator[Message]:
        seen: set[str] = set()
        while True:
            await asyncio.sleep(self._interval)
            principal = await self._auth.current_principal()
            fresh = [
                m for m in await self._loader.load(conversation_id, principal)
                if m.id not in seen
            ]
            if fresh:
                logger.debug("Poll found %d new message(s) in %s", len(fresh), conversation_id)
            for message in fresh:
                seen.add(message.id)
                yield message

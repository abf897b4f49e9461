"""Durable conversation history with a fallback read path."""
from __future__ import annotations

import logging
from typing import AsyncIterator

from rental_chat.application.dto.principal import Principal
from rental_chat.application.ports.history import HistorySource
from rental_chat.domain.entities.message import Message

logger = logging.getLogger(__name__)


class HistoryLoader:
    """Fetch history from the primary source, else the fallback, else nothing.

    The primary is used only for authenticated callers. Every failure is
    logged and degrades to an empty history; nothing is raised.
    """

    def __init__(
        self,
        primary: HistorySource | None,
        fallback: HistorySource | None = None,
    ) -> None:
        self._primary = primary
        self._fallback = fallback

    async def load(self, conversation_id: str, principal: Principal) -> list[Message]:
        if self._primary is not None and principal.is_authenticated:
            try:
                return _ordered(await self._primary.fetch(conversation_id, principal))
            except Exception:
                logger.warning(
                    "Primary history unavailable for conversation %s",
                    conversation_id,
                    exc_info=True,
                )

        if self._fallback is not None:
            try:
                return _ordered(await self._fallback.fetch(conversation_id, principal))
            except Exception:
                logger.warning(
                    "Fallback history unavailable for conversation %s",
                    conversation_id,
                    exc_info=True,
                )

        logger.info("No history source answered for conversation %s, starting empty", conversation_id)
        return []

    async def iter_history(
        self, conversation_id: str, principal: Principal,
    ) -> AsyncIterator[Message]:
        """One-shot ascending iteration; the fetch runs on first ``anext``."""
        for message in await self.load(conversation_id, principal):
            yield message


def _ordered(messages: list[Message]) -> list[Message]:
    # sorted() is stable, so equal timestamps keep source order
    return sorted(messages, key=lambda m: m.created_at)

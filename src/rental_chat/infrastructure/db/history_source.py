"""Direct read of the ``messages`` table, used when the chat API is unreachable."""
from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rental_chat.application.dto.principal import Principal
from rental_chat.application.exceptions import AppError, HistoryUnavailableError
from rental_chat.domain.entities.message import Message
from rental_chat.infrastructure.db.uow import SqlAlchemyUoW


class TableHistorySource:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def fetch(self, conversation_id: str, principal: Principal) -> list[Message]:
        try:
            async with self._session_factory() as session:
                uow = SqlAlchemyUoW(session)
                return await uow.messages.list_messages(conversation_id)
        except (SQLAlchemyError, OSError, AppError) as exc:
            raise HistoryUnavailableError(f"table read failed: {exc}") from exc

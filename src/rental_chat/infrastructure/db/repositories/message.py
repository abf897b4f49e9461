from __future__ import annotations

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from rental_chat.application.exceptions import ValidationError
from rental_chat.domain.entities.message import Message
from rental_chat.infrastructure.db.mappers import message as mapper
from rental_chat.infrastructure.db.models.message import MessageModel


def _listing_id(conversation_id: str) -> int:
    try:
        return int(conversation_id)
    except ValueError:
        raise ValidationError(f"invalid listing id: {conversation_id!r}") from None


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_messages(self, conversation_id: str, *, limit: int = 500) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.listing_id == _listing_id(conversation_id))
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        conversation_id: str,
        sender_id: str,
        content: str,
        attachment_url: str | None,
    ) -> Message:
        stmt = (
            insert(MessageModel)
            .values(
                listing_id=_listing_id(conversation_id),
                sender_id=sender_id,
                content=content,
                attachment_url=attachment_url,
            )
            .returning(MessageModel)
        )
        result = await self._session.execute(stmt)
        return mapper.model_to_entity(result.scalar_one())

from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field

from rental_chat.domain.entities.message import Message


class SendMessageRequest(BaseModel):
    listing_id: int = Field(validation_alias=AliasChoices("listing_id", "conversation_id"))
    content: str = ""
    attachment_url: str | None = None


class MessageResponse(BaseModel):
    id: str
    listing_id: str
    sender_id: str
    content: str
    attachment_url: str | None
    created_at: datetime

    @classmethod
    def from_entity(cls, msg: Message) -> MessageResponse:
        return cls(
            id=msg.id,
            listing_id=msg.conversation_id,
            sender_id=msg.sender_id,
            content=msg.content,
            attachment_url=msg.attachment_url,
            created_at=msg.created_at,
        )

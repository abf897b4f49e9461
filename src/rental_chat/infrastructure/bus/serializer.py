"""JSON encoding for message payloads and event envelopes."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from rental_chat.domain.entities.message import Message

logger = logging.getLogger(__name__)


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, UUID):
            return str(o)
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


class MessagePayload(BaseModel):
    """A message as it travels over HTTP, WebSocket and Redis.

    Field names follow the ``messages`` table; ``conversation_id`` is
    accepted in place of ``listing_id``.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    listing_id: str = Field(validation_alias=AliasChoices("listing_id", "conversation_id"))
    sender_id: str
    content: str = ""
    attachment_url: str | None = None
    created_at: datetime

    @field_validator("id", "listing_id", "sender_id", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        if isinstance(v, (int, UUID)):
            return str(v)
        return v

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def to_entity(self) -> Message:
        return Message(
            id=self.id,
            conversation_id=self.listing_id,
            sender_id=self.sender_id,
            content=self.content,
            created_at=self.created_at,
            attachment_url=self.attachment_url,
        )

    @classmethod
    def from_entity(cls, message: Message) -> MessagePayload:
        return cls(
            id=message.id,
            listing_id=message.conversation_id,
            sender_id=message.sender_id,
            content=message.content,
            attachment_url=message.attachment_url,
            created_at=message.created_at,
        )


def message_to_dict(message: Message) -> dict[str, Any]:
    return MessagePayload.from_entity(message).model_dump(mode="json")


def message_from_dict(data: Any) -> Message | None:
    """Parse one message object. Malformed input yields None."""
    try:
        return MessagePayload.model_validate(data).to_entity()
    except (PydanticValidationError, ValueError):
        logger.debug("Dropping malformed message payload: %r", data)
        return None


def serialize_event(event_type: str, payload: dict[str, Any]) -> str:
    envelope = {"event": event_type, "data": payload}
    return json.dumps(envelope, cls=_Encoder)


def deserialize_event(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    data = json.loads(raw)
    return data["event"], data["data"]

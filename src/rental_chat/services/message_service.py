from __future__ import annotations

import logging

from rental_chat.application.dto.message import SendMessageDTO
from rental_chat.application.dto.principal import Principal
from rental_chat.application.exceptions import UnauthenticatedError, ValidationError
from rental_chat.application.ports.bus import EventPublisher
from rental_chat.application.uow import UnitOfWork
from rental_chat.domain.entities.message import Message
from rental_chat.infrastructure.bus.serializer import message_to_dict
from rental_chat.infrastructure.ws.protocol import MESSAGE_CREATED

logger = logging.getLogger(__name__)


async def send_message(
    dto: SendMessageDTO,
    principal: Principal,
    uow: UnitOfWork,
    publisher: EventPublisher,
) -> Message:
    """Persist a message, then fan it out to the conversation's live subscribers.

    Fan-out failures are logged; the message is already durable by then.
    """
    if not principal.user_id:
        raise UnauthenticatedError("sender identity required")
    content = dto.content.strip()
    if not content and not dto.attachment_url:
        raise ValidationError("message needs content or an attachment")

    msg = await uow.messages_w.create(
        dto.conversation_id, principal.user_id, content, dto.attachment_url,
    )
    await uow.commit()

    try:
        await publisher.publish(
            msg.conversation_id,
            MESSAGE_CREATED,
            {"listing_id": msg.conversation_id, "message": message_to_dict(msg)},
        )
    except Exception:
        logger.exception("Fan-out failed for message %s", msg.id)
    return msg


async def list_messages(
    conversation_id: str,
    limit: int,
    uow: UnitOfWork,
) -> list[Message]:
    return await uow.messages.list_messages(conversation_id, limit=limit)

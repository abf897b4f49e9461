from __future__ import annotations

from fastapi import APIRouter, Query

from rental_chat.api.deps import CurrentPrincipal, PublisherDep, UoWDep
from rental_chat.api.v1.schemas.message import MessageResponse, SendMessageRequest
from rental_chat.application.dto.message import SendMessageDTO
from rental_chat.services import message_service

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("", response_model=list[MessageResponse])
async def list_messages(
    principal: CurrentPrincipal,
    uow: UoWDep,
    listing_id: int = Query(...),
    limit: int = Query(500, ge=1, le=1000),
) -> list[MessageResponse]:
    messages = await message_service.list_messages(str(listing_id), limit, uow)
    return [MessageResponse.from_entity(m) for m in messages]


@router.post("", response_model=MessageResponse, status_code=201)
async def send_message(
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    publisher: PublisherDep,
) -> MessageResponse:
    dto = SendMessageDTO(
        conversation_id=str(body.listing_id),
        content=body.content,
        attachment_url=body.attachment_url,
    )
    msg = await message_service.send_message(dto, principal, uow, publisher)
    return MessageResponse.from_entity(msg)

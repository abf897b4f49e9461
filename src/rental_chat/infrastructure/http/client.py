"""REST client for the chat API: history fetch and durable send."""
from __future__ import annotations

import logging
from typing import Any

import httpx

from rental_chat.application.dto.message import SendMessageDTO
from rental_chat.application.dto.principal import Principal
from rental_chat.application.exceptions import HistoryUnavailableError, SendFailedError
from rental_chat.domain.entities.message import Message
from rental_chat.infrastructure.bus.serializer import message_from_dict
from rental_chat.infrastructure.http.urls import build_ws_url

logger = logging.getLogger(__name__)


class ChatApiClient:
    """Implements HistorySource and MessageSender over HTTP.

    The httpx client is owned by the caller and must carry the API base URL.
    """

    def __init__(self, http: httpx.AsyncClient, *, ws_url: str | None = None) -> None:
        self._http = http
        self._ws_url = ws_url

    def ws_url(self, path: str = "/ws") -> str:
        return build_ws_url(str(self._http.base_url), self._ws_url, path)

    async def fetch(self, conversation_id: str, principal: Principal) -> list[Message]:
        if not principal.token:
            raise HistoryUnavailableError("missing credential")
        try:
            resp = await self._http.get(
                "/messages",
                params={"listing_id": conversation_id},
                headers=principal.auth_headers,
            )
            resp.raise_for_status()
            body = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise HistoryUnavailableError(f"history fetch failed: {exc}") from exc

        items = body.get("messages", []) if isinstance(body, dict) else body
        if not isinstance(items, list):
            raise HistoryUnavailableError("unexpected history payload")

        messages = [m for m in (message_from_dict(item) for item in items) if m is not None]
        if len(messages) != len(items):
            logger.debug(
                "Dropped %d malformed history rows for conversation %s",
                len(items) - len(messages), conversation_id,
            )
        return messages

    async def send(self, dto: SendMessageDTO, principal: Principal) -> Message | None:
        if not principal.token:
            raise SendFailedError("missing credential")
        payload: dict[str, Any] = {
            "listing_id": dto.conversation_id,
            "content": dto.content,
        }
        if dto.attachment_url:
            payload["attachment_url"] = dto.attachment_url
        try:
            resp = await self._http.post(
                "/messages", json=payload, headers=principal.auth_headers,
            )
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise SendFailedError(f"send failed: {exc}") from exc

        try:
            body = resp.json()
        except ValueError:
            return None
        if not isinstance(body, dict):
            return None
        # the response may carry only id + created_at; fill in what was sent
        merged = {
            "sender_id": principal.user_id,
            "attachment_url": dto.attachment_url,
            **payload,
            **{k: v for k, v in body.items() if v is not None},
        }
        return message_from_dict(merged)

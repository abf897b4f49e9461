from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SendMessageDTO:
    conversation_id: str
    content: str
    attachment_url: str | None = None

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Message:
    id: str
    conversation_id: str
    sender_id: str
    content: str
    created_at: datetime
    attachment_url: str | None = None

    def __post_init__(self) -> None:
        if not self.content and not self.attachment_url:
            raise ValueError("message needs content or an attachment")

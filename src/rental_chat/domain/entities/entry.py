from __future__ import annotations

from dataclasses import dataclass, replace

from rental_chat.domain.entities.message import Message
from rental_chat.domain.value_objects.enums import EntryState


@dataclass(frozen=True, slots=True)
class TimelineEntry:
    """A message as shown in a conversation, tagged with its delivery state."""

    message: Message
    state: EntryState
    seq: int

    @property
    def is_pending(self) -> bool:
        return self.state != EntryState.DURABLE

    @property
    def is_sending(self) -> bool:
        return self.state == EntryState.PENDING

    @property
    def failed(self) -> bool:
        return self.state == EntryState.FAILED

    @property
    def sort_key(self) -> tuple:
        return (self.message.created_at, self.seq)

    def with_state(self, state: EntryState) -> TimelineEntry:
        return replace(self, state=state)

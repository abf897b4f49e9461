"""Per-conversation message timeline.

Merges three feeds into one ordered, de-duplicated list:

* the durable history snapshot from :class:`HistoryLoader`,
* messages pushed by one or more live channels,
* the local user's optimistic sends and their confirmations.

Entries are ordered by ``(created_at, seq)`` where ``seq`` is the insertion
rank, so equal timestamps keep arrival order. An optimistic entry keeps its
``seq`` when it is confirmed, which leaves it where it was unless the server
timestamp forces a move.

All mutation happens synchronously on the event loop (``merge`` never awaits),
so feeds can interleave freely without a lock.
"""
from __future__ import annotations

import asyncio
import bisect
import logging
import uuid
from datetime import datetime, timedelta
from types import TracebackType
from typing import Any, Callable, Coroutine, Self, Sequence

from rental_chat.application.dto.message import SendMessageDTO
from rental_chat.application.dto.principal import ANONYMOUS, Principal
from rental_chat.application.exceptions import (
    ChannelError,
    UnauthenticatedError,
    ValidationError,
)
from rental_chat.application.ports.auth import AuthProvider
from rental_chat.application.ports.channel import LiveChannel
from rental_chat.application.ports.clock import Clock, SystemClock
from rental_chat.application.ports.sender import MessageSender
from rental_chat.application.ports.uploader import ImageUploader
from rental_chat.domain.entities.entry import TimelineEntry
from rental_chat.domain.entities.message import Message
from rental_chat.domain.value_objects.enums import EntryState
from rental_chat.domain.value_objects.ids import LOCAL_ECHO_SENDER, LOCAL_ID_PREFIX
from rental_chat.services.history_loader import HistoryLoader

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = timedelta(seconds=5)


class ConversationStore:
    def __init__(
        self,
        history: HistoryLoader,
        channels: Sequence[LiveChannel],
        sender: MessageSender,
        auth: AuthProvider,
        *,
        uploader: ImageUploader | None = None,
        clock: Clock | None = None,
        tolerance: timedelta = DEFAULT_TOLERANCE,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._history = history
        self._channels = list(channels)
        self._sender = sender
        self._auth = auth
        self._uploader = uploader
        self._clock = clock or SystemClock()
        self._tolerance = tolerance
        self._on_change = on_change

        self._conversation_id: str | None = None
        self._generation = 0
        self._seq = 0
        self._entries: list[TimelineEntry] = []
        self._durable_ids: set[str] = set()
        self._pending: dict[str, TimelineEntry] = {}
        self._staged_attachment: str | None = None
        self._feed_tasks: set[asyncio.Task[None]] = set()
        self._send_tasks: set[asyncio.Task[None]] = set()

    # ── rendering surface ──────────────────────────────────

    @property
    def conversation_id(self) -> str | None:
        return self._conversation_id

    @property
    def entries(self) -> list[TimelineEntry]:
        return list(self._entries)

    @property
    def messages(self) -> list[Message]:
        return [e.message for e in self._entries]

    @property
    def pending(self) -> list[TimelineEntry]:
        return list(self._pending.values())

    @property
    def staged_attachment(self) -> str | None:
        return self._staged_attachment

    # ── lifecycle ──────────────────────────────────────────

    async def open(self, conversation_id: str) -> None:
        """Switch to ``conversation_id`` and start its feeds in the background.

        Returns once the history fetch and channel subscriptions are
        scheduled. Feeds belonging to the previous conversation are torn
        down first.
        """
        await self.close()
        self._conversation_id = conversation_id
        generation = self._generation

        self._spawn_feed(
            self._load_history(generation, conversation_id),
            name=f"history-{conversation_id}",
        )
        for index, channel in enumerate(self._channels):
            self._spawn_feed(
                self._consume(generation, channel, conversation_id),
                name=f"channel-{index}-{conversation_id}",
            )
        logger.debug(
            "Opened conversation %s with %d live channel(s)",
            conversation_id, len(self._channels),
        )

    async def close(self) -> None:
        """Stop the feeds and forget the current conversation.

        Sends already in flight are left to finish; their results are
        discarded because the generation has moved on.
        """
        self._generation += 1
        tasks = list(self._feed_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._feed_tasks.clear()

        if self._conversation_id is not None:
            logger.debug("Closed conversation %s", self._conversation_id)
        self._conversation_id = None
        self._entries = []
        self._durable_ids = set()
        self._pending = {}
        self._staged_attachment = None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ── merge / reconciliation ─────────────────────────────

    def merge(self, incoming: Message) -> bool:
        """Fold a durable message into the timeline. Return True if it changed."""
        if incoming.conversation_id != self._conversation_id:
            logger.debug(
                "Dropping message %s for conversation %s (open: %s)",
                incoming.id, incoming.conversation_id, self._conversation_id,
            )
            return False
        if incoming.id in self._durable_ids:
            return False

        match = self._find_pending(incoming)
        if match is not None:
            self._settle(match, incoming)
        else:
            self._insert(TimelineEntry(incoming, EntryState.DURABLE, self._next_seq()))
            self._durable_ids.add(incoming.id)
        self._changed()
        return True

    def _find_pending(self, incoming: Message) -> TimelineEntry | None:
        for entry in self._pending.values():
            if entry.state is not EntryState.PENDING:
                continue
            local = entry.message
            if (
                local.conversation_id == incoming.conversation_id
                and _same_sender(local.sender_id, incoming.sender_id)
                and local.content == incoming.content
                and abs(incoming.created_at - local.created_at) <= self._tolerance
            ):
                return entry
        return None

    def _settle(self, entry: TimelineEntry, durable: Message) -> None:
        """Replace an optimistic entry with its durable counterpart."""
        self._remove(entry)
        del self._pending[entry.message.id]
        self._insert(TimelineEntry(durable, EntryState.DURABLE, entry.seq))
        self._durable_ids.add(durable.id)

    def _confirm(self, local_id: str, durable: Message) -> None:
        """Apply a send response to the entry it answers."""
        entry = self._pending.get(local_id)
        if entry is None:
            # already collapsed by the channel echo
            self.merge(durable)
            return
        if durable.id in self._durable_ids:
            # echo arrived but was not recognised by key; keep the durable one
            self._remove(entry)
            del self._pending[local_id]
        else:
            self._settle(entry, durable)
        self._changed()

    # ── sending ────────────────────────────────────────────

    async def send_local(
        self, content: str, attachment_url: str | None = None,
    ) -> TimelineEntry:
        """Show ``content`` immediately and deliver it in the background.

        Raises UnauthenticatedError when nobody is signed in; the caller is
        expected to route to login.
        """
        principal = await self._auth.current_principal()
        if not principal.is_authenticated:
            raise UnauthenticatedError("sign in to send messages")
        conversation_id = self._conversation_id
        if conversation_id is None:
            raise ValidationError("no conversation is open")

        text = content.strip()
        attachment = attachment_url or self._staged_attachment
        if not text and not attachment:
            raise ValidationError("message is empty")

        assert principal.user_id is not None
        message = Message(
            id=f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex}",
            conversation_id=conversation_id,
            sender_id=principal.user_id,
            content=text,
            created_at=self._next_local_timestamp(principal.user_id),
            attachment_url=attachment,
        )
        entry = TimelineEntry(message, EntryState.PENDING, self._next_seq())
        self._insert(entry)
        self._pending[message.id] = entry
        self._staged_attachment = None
        self._changed()

        dto = SendMessageDTO(
            conversation_id=conversation_id,
            content=text,
            attachment_url=attachment,
        )
        task = asyncio.create_task(
            self._deliver(self._generation, message.id, dto, principal),
            name=f"send-{message.id}",
        )
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)
        return entry

    async def _deliver(
        self,
        generation: int,
        local_id: str,
        dto: SendMessageDTO,
        principal: Principal,
    ) -> None:
        try:
            durable = await self._sender.send(dto, principal)
        except Exception:
            if generation != self._generation:
                return
            logger.warning(
                "Send failed for %s in conversation %s",
                local_id, dto.conversation_id, exc_info=True,
            )
            self._mark_failed(local_id)
            return

        if generation != self._generation:
            return
        if durable is None:
            logger.debug("Send of %s accepted without a body; waiting for echo", local_id)
            return
        self._confirm(local_id, durable)

    def _mark_failed(self, local_id: str) -> None:
        entry = self._pending.get(local_id)
        if entry is None:
            return
        failed = entry.with_state(EntryState.FAILED)
        self._entries[self._index_of(entry)] = failed
        self._pending[local_id] = failed
        self._changed()

    def _next_local_timestamp(self, sender_id: str) -> datetime:
        now = self._clock.now()
        latest = max(
            (e.message.created_at for e in self._entries if e.message.sender_id == sender_id),
            default=None,
        )
        if latest is not None and latest > now:
            return latest
        return now

    # ── attachments ────────────────────────────────────────

    async def stage_attachment(
        self,
        data: bytes,
        filename: str,
        content_type: str = "image/jpeg",
    ) -> str:
        """Upload an image; its URL rides along with the next ``send_local``."""
        if self._uploader is None:
            raise ValidationError("image upload is not configured")
        if self._conversation_id is None:
            raise ValidationError("no conversation is open")
        key = f"chat/{self._conversation_id}/{uuid.uuid4().hex}-{filename}"
        url = await self._uploader.upload(key, data, content_type)
        self._staged_attachment = url
        return url

    # ── feeds ──────────────────────────────────────────────

    def _spawn_feed(self, coro: Coroutine[Any, Any, None], *, name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._feed_tasks.add(task)
        task.add_done_callback(self._feed_tasks.discard)

    async def _load_history(self, generation: int, conversation_id: str) -> None:
        try:
            principal = await self._auth.current_principal()
        except Exception:
            logger.warning("Could not resolve caller for history; loading anonymously", exc_info=True)
            principal = ANONYMOUS
        messages = await self._history.load(conversation_id, principal)
        if generation != self._generation:
            logger.debug("Discarding late history for conversation %s", conversation_id)
            return
        for message in messages:
            self.merge(message)

    async def _consume(
        self, generation: int, channel: LiveChannel, conversation_id: str,
    ) -> None:
        try:
            async for message in channel.stream(conversation_id):
                if generation != self._generation:
                    return
                self.merge(message)
        except ChannelError as exc:
            logger.warning("Live channel for %s dropped: %s", conversation_id, exc.detail)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Live channel for %s failed", conversation_id)

    # ── list maintenance ───────────────────────────────────

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    def _insert(self, entry: TimelineEntry) -> None:
        bisect.insort(self._entries, entry, key=lambda e: e.sort_key)

    def _index_of(self, entry: TimelineEntry) -> int:
        return next(i for i, e in enumerate(self._entries) if e.seq == entry.seq)

    def _remove(self, entry: TimelineEntry) -> None:
        del self._entries[self._index_of(entry)]

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()


def _same_sender(local: str, remote: str) -> bool:
    return local == remote or local == LOCAL_ECHO_SENDER

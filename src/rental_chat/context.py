"""Client-side composition root.

A ``ChatContext`` owns every network resource the chat core uses (the httpx
client, the optional fallback database engine and Redis connection) and hands
out fresh :class:`ConversationStore` instances wired to them. Create one per
process, or one per test::

    async with ChatContext(get_settings(), SessionAuth()) as ctx:
        store = ctx.conversation_store()
        await store.open("42")
"""
from __future__ import annotations

import logging
from datetime import timedelta
from types import TracebackType
from typing import Callable, Self

import httpx
import redis.asyncio as aioredis

from rental_chat.application.ports.auth import AuthProvider
from rental_chat.application.ports.channel import LiveChannel
from rental_chat.application.ports.clock import Clock
from rental_chat.config import Settings
from rental_chat.domain.value_objects.enums import LiveTransport
from rental_chat.infrastructure.channels.polling_channel import PollingChannel
from rental_chat.infrastructure.channels.redis_channel import RedisChannel
from rental_chat.infrastructure.channels.ws_channel import WebSocketChannel
from rental_chat.infrastructure.db.history_source import TableHistorySource
from rental_chat.infrastructure.db.session import make_engine, make_sessionmaker
from rental_chat.infrastructure.http.client import ChatApiClient
from rental_chat.infrastructure.http.storage import StorageUploader
from rental_chat.services.conversation_store import ConversationStore
from rental_chat.services.history_loader import HistoryLoader

logger = logging.getLogger(__name__)


class ChatContext:
    def __init__(
        self,
        settings: Settings,
        auth: AuthProvider,
        *,
        http: httpx.AsyncClient | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.settings = settings
        self.auth = auth
        self._clock = clock
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(
            base_url=settings.CHAT_API_URL,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
        self.api = ChatApiClient(self.http, ws_url=settings.CHAT_WS_URL)

        self._engine = None
        fallback = None
        if settings.DB_FALLBACK_ENABLED:
            self._engine = make_engine(settings)
            fallback = TableHistorySource(make_sessionmaker(self._engine))
        self.history = HistoryLoader(self.api, fallback)

        self.redis: aioredis.Redis | None = None
        if LiveTransport.REDIS in settings.LIVE_TRANSPORTS:
            self.redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)

        self.uploader: StorageUploader | None = None
        if settings.STORAGE_URL:
            self.uploader = StorageUploader(
                self.http,
                settings.STORAGE_URL,
                settings.STORAGE_BUCKET,
                settings.STORAGE_API_KEY,
            )

    def channels(self) -> list[LiveChannel]:
        built: list[LiveChannel] = []
        for transport in self.settings.LIVE_TRANSPORTS:
            if transport == LiveTransport.WS:
                built.append(WebSocketChannel(self.api.ws_url(), self.auth))
            elif transport == LiveTransport.POLL:
                built.append(
                    PollingChannel(self.history, self.auth, self.settings.POLL_INTERVAL_SECONDS)
                )
            elif transport == LiveTransport.REDIS and self.redis is not None:
                built.append(RedisChannel(self.redis, self.settings.REDIS_CHANNEL_PREFIX))
        return built

    def conversation_store(
        self, on_change: Callable[[], None] | None = None,
    ) -> ConversationStore:
        return ConversationStore(
            self.history,
            self.channels(),
            self.api,
            self.auth,
            uploader=self.uploader,
            clock=self._clock,
            tolerance=timedelta(seconds=self.settings.RECONCILE_TOLERANCE_SECONDS),
            on_change=on_change,
        )

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()
        if self.redis is not None:
            await self.redis.aclose()
        if self._engine is not None:
            await self._engine.dispose()
        logger.debug("Chat context closed")

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

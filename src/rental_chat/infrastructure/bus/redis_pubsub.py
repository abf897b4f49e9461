"""Redis Pub/Sub fan-out: publish side and the subscriber background task."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis

from rental_chat.infrastructure.bus.serializer import deserialize_event, serialize_event
from rental_chat.infrastructure.channels.redis_channel import channel_name

logger = logging.getLogger(__name__)


class RedisPubSubPublisher:
    """Implements application.ports.bus.EventPublisher."""

    def __init__(self, redis: aioredis.Redis, prefix: str) -> None:
        self._redis = redis
        self._prefix = prefix

    async def publish(self, conversation_id: str, event_type: str, data: dict[str, Any]) -> None:
        raw = serialize_event(event_type, data)
        await self._redis.publish(channel_name(self._prefix, conversation_id), raw)


OnEventCallback = Callable[[str, str, dict[str, Any]], Coroutine[Any, Any, None]]


class RedisPubSubSubscriber:
    """Background task that listens to every conversation channel and dispatches events."""

    def __init__(
        self,
        redis: aioredis.Redis,
        prefix: str,
        callback: OnEventCallback,
    ) -> None:
        self._redis = redis
        self._prefix = prefix
        self._pattern = channel_name(prefix, "*")
        self._callback = callback
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._listen(), name="redis-pubsub-subscriber")
        logger.info("Redis Pub/Sub subscriber started on pattern=%s", self._pattern)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info("Redis Pub/Sub subscriber stopped")

    async def _listen(self) -> None:
        pubsub = self._redis.pubsub()
        await pubsub.psubscribe(self._pattern)
        try:
            async for message in pubsub.listen():
                if message["type"] != "pmessage":
                    continue
                try:
                    conversation_id = message["channel"][len(self._prefix) + 1:]
                    event_type, data = deserialize_event(message["data"])
                    await self._callback(conversation_id, event_type, data)
                except Exception:
                    logger.exception("Error processing pubsub message")
        finally:
            await pubsub.punsubscribe(self._pattern)
            await pubsub.aclose()

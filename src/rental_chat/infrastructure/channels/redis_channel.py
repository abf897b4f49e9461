"""Push channel over Redis Pub/Sub, one channel per conversation."""
from __future__ import annotations

import logging
from typing import AsyncIterator

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from rental_chat.application.exceptions import ChannelError
from rental_chat.domain.entities.message import Message
from rental_chat.infrastructure.bus.serializer import deserialize_event, message_from_dict
from rental_chat.infrastructure.ws.protocol import MESSAGE_CREATED

logger = logging.getLogger(__name__)


def channel_name(prefix: str, conversation_id: str) -> str:
    return f"{prefix}:{conversation_id}"


class RedisChannel:
    def __init__(self, redis: aioredis.Redis, prefix: str) -> None:
        self._redis = redis
        self._prefix = prefix

    async def stream(self, conversation_id: str) -> AsyncIterator[Message]:
        name = channel_name(self._prefix, conversation_id)
        pubsub = self._redis.pubsub()
        try:
            await pubsub.subscribe(name)
            async for item in pubsub.listen():
                if item["type"] != "message":
                    continue
                try:
                    event_type, data = deserialize_event(item["data"])
                except (ValueError, KeyError, TypeError):
                    logger.debug("Dropping malformed pubsub payload on %s", name)
                    continue
                if event_type != MESSAGE_CREATED or not isinstance(data, dict):
                    continue
                message = message_from_dict(data.get("message", data))
                if message is None or message.conversation_id != conversation_id:
                    continue
                yield message
        except RedisError as exc:
            raise ChannelError(f"redis subscription failed: {exc}") from exc
        finally:
            await pubsub.unsubscribe(name)
            await pubsub.aclose()

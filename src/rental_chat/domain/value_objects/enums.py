from __future__ import annotations

from enum import StrEnum


class EntryState(StrEnum):
    DURABLE = "durable"
    PENDING = "pending"
    FAILED = "failed"


class LiveTransport(StrEnum):
    WS = "ws"
    POLL = "poll"
    REDIS = "redis"

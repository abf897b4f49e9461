from __future__ import annotations

from typing import NewType

UserId = NewType("UserId", str)

# Sender marker for entries echoed locally before the author is known.
LOCAL_ECHO_SENDER = UserId("local-echo")

LOCAL_ID_PREFIX = "local-"


def is_local_id(message_id: str) -> bool:
    return message_id.startswith(LOCAL_ID_PREFIX)

"""Test environment defaults, applied before rental_chat reads its settings."""
from __future__ import annotations

import os

_TEST_ENV = {
    "JWT_SECRET": "test-secret-key-for-rental-chat-suite-0123456789",
    "DB_FALLBACK_ENABLED": "false",
    "FANOUT_MODE": "local",
    "LIVE_TRANSPORTS": '["ws"]',
}

for _key, _value in _TEST_ENV.items():
    os.environ.setdefault(_key, _value)

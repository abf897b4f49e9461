from __future__ import annotations

from typing import Protocol


class ImageUploader(Protocol):
    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``key`` and return its public URL."""
        ...

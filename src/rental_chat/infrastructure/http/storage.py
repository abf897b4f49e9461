from __future__ import annotations

import logging
from urllib.parse import quote

import httpx

from rental_chat.application.exceptions import SendFailedError

logger = logging.getLogger(__name__)


class StorageUploader:
    """Uploads chat images to an object-storage bucket and returns public URLs."""

    def __init__(self, http: httpx.AsyncClient, base_url: str, bucket: str, api_key: str) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._bucket = bucket
        self._api_key = api_key

    def public_url(self, key: str) -> str:
        return f"{self._base_url}/storage/v1/object/public/{self._bucket}/{quote(key)}"

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        url = f"{self._base_url}/storage/v1/object/{self._bucket}/{quote(key)}"
        try:
            resp = await self._http.post(
                url,
                content=data,
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": content_type,
                    "x-upsert": "false",
                },
            )
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise SendFailedError(f"upload failed: {exc}") from exc
        logger.debug("Uploaded %d bytes to %s/%s", len(data), self._bucket, key)
        return self.public_url(key)

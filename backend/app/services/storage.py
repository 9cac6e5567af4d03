import logging
import re
import secrets
from pathlib import PurePosixPath

import httpx

from app.config import settings

logger = logging.getLogger(__name__)


def generate_key(prefix: str, original_filename: str) -> str:
    """``prefix/<random id>.<ext>``; unusual extensions fall back to ``bin``."""
    ext = PurePosixPath(original_filename).suffix.lstrip(".").lower()
    if not re.fullmatch(r"[a-z0-9]+", ext):
        ext = "bin"
    return re.sub(r"/+", "/", f"{prefix}/{secrets.token_urlsafe(12)}.{ext}")


class ObjectStorage:
    """Object store reached over HTTP: PUT/DELETE ``{upload_url}/{key}``."""

    def __init__(
        self,
        upload_url: str,
        public_base_url: str = "",
        token: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.upload_url = upload_url.rstrip("/")
        self.public_base_url = (public_base_url or upload_url).rstrip("/")
        self.token = token
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            resp = await client.put(
                f"{self.upload_url}/{key}",
                content=data,
                headers={**self._headers(), "Content-Type": content_type},
            )
            resp.raise_for_status()
        logger.info(f"Uploaded {key} ({len(data)} bytes)")
        return self.public_url(key)

    async def delete(self, key: str) -> None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            resp = await client.delete(f"{self.upload_url}/{key}", headers=self._headers())
            if resp.status_code != 404:
                resp.raise_for_status()


def get_object_storage() -> ObjectStorage | None:
    if not settings.STORAGE_UPLOAD_URL:
        return None
    return ObjectStorage(
        settings.STORAGE_UPLOAD_URL,
        public_base_url=settings.STORAGE_PUBLIC_BASE_URL,
        token=settings.STORAGE_TOKEN,
        timeout=settings.STORAGE_TIMEOUT_SECONDS,
    )

import asyncio
import re

import httpx
import pytest

from app.config import settings
from app.services.storage import ObjectStorage, generate_key, get_object_storage


def test_generate_key_shape():
    key = generate_key("products", "Ring 1.JPG")
    assert re.fullmatch(r"products/[A-Za-z0-9_-]{16}\.jpg", key)
    assert generate_key("products", "ring1.jpg") != generate_key("products", "ring1.jpg")


def test_generate_key_odd_extension():
    assert generate_key("products/", "noext").endswith(".bin")
    assert generate_key("products", "weird.j p g").endswith(".bin")
    assert "//" not in generate_key("products/", "a.png")


def test_put_sends_bytes_and_returns_public_url():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["type"] = request.headers.get("content-type")
        seen["body"] = request.content
        return httpx.Response(200)

    storage = ObjectStorage(
        "https://upload.example.com/bucket/",
        public_base_url="https://cdn.example.com",
        token="secret",
        transport=httpx.MockTransport(handler),
    )
    url = asyncio.run(storage.put("products/abc.png", b"img", "image/png"))

    assert url == "https://cdn.example.com/products/abc.png"
    assert seen == {
        "method": "PUT",
        "url": "https://upload.example.com/bucket/products/abc.png",
        "auth": "Bearer secret",
        "type": "image/png",
        "body": b"img",
    }


def test_put_raises_on_error_status():
    storage = ObjectStorage(
        "https://upload.example.com",
        transport=httpx.MockTransport(lambda request: httpx.Response(503)),
    )
    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(storage.put("products/a.jpg", b"x", "image/jpeg"))


def test_delete_tolerates_missing_object():
    storage = ObjectStorage(
        "https://upload.example.com",
        transport=httpx.MockTransport(lambda request: httpx.Response(404)),
    )
    asyncio.run(storage.delete("products/gone.jpg"))


def test_storage_unconfigured(monkeypatch):
    monkeypatch.setattr(settings, "STORAGE_UPLOAD_URL", "")
    assert get_object_storage() is None
    monkeypatch.setattr(settings, "STORAGE_UPLOAD_URL", "https://upload.example.com")
    assert get_object_storage().public_url("k.jpg") == "https://upload.example.com/k.jpg"

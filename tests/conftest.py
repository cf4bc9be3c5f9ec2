import asyncio
import os
from io import BytesIO

import httpx
import pytest
from PIL import Image

# Settings are read at import time; give the required ones test values.
os.environ.setdefault("BOT_TOKEN", "1")
os.environ.setdefault("API_ID", "1")
os.environ.setdefault("API_HASH", "test-hash")

from collagify.errors import MessagingError  # noqa: E402
from collagify.services.store import AggregationStore  # noqa: E402

FILES_HOST = "http://files.test"


def make_image(color, size=(10, 10), fmt="PNG") -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


class FakeMessenger:
    """In-memory stand-in for the Telegram client."""

    def __init__(self):
        self.sent = []
        self.deleted = []
        self.failing_filenames = set()
        self.fail_delete = False

    async def resolve_download_url(self, file_id):
        return f"{FILES_HOST}/{file_id}"

    async def send_image(self, chat_id, filename, data):
        await asyncio.sleep(0)
        if filename in self.failing_filenames:
            raise MessagingError(f"send {filename} to chat {chat_id}: refused")
        self.sent.append((chat_id, filename, data))

    async def delete_messages(self, chat_id, message_ids):
        if self.fail_delete:
            raise MessagingError(f"delete messages in chat {chat_id}: refused")
        self.deleted.append((chat_id, list(message_ids)))


class FileServer:
    """Serves registered payloads under FILES_HOST; anything else is a 404."""

    def __init__(self):
        self.files = {}
        self.requested = []

    def add(self, name, data) -> str:
        url = f"{FILES_HOST}/{name}"
        self.files[url] = data
        return url

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requested.append(url)
        if url not in self.files:
            return httpx.Response(404)
        return httpx.Response(200, content=self.files[url])

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def store(tmp_path):
    s = AggregationStore(f"sqlite:///{tmp_path / 'collagify.sqlite'}")
    yield s
    s.close()


@pytest.fixture
def messenger():
    return FakeMessenger()


@pytest.fixture
def file_server():
    return FileServer()

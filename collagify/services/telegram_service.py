# collagify/services/telegram_service.py
import asyncio
import logging
from io import BytesIO
from typing import Iterable, List

import httpx
from pyrogram import Client, filters
from pyrogram.errors import FloodWait, RPCError
from pyrogram.handlers import ChatMemberUpdatedHandler, MessageHandler

from collagify.config import settings
from collagify.errors import MessagingError
from collagify.services.bot_api import BotApiFiles

logger = logging.getLogger(__name__)

DELETE_BATCH_SIZE = 100  # Telegram accepts at most 100 ids per deleteMessages call


class TelegramService:
    def __init__(self, http: httpx.AsyncClient, session_name: str = settings.session_name, client=None):
        self.session_name = session_name
        self.client = client or Client(
            name=self.session_name,
            api_id=settings.api_id,
            api_hash=settings.api_hash,
            bot_token=settings.bot_token,
        )
        self.files = BotApiFiles(http, settings.bot_token, settings.telegram_api_server)
        self.max_retries = settings.max_send_retries

    def add_handlers(self, on_channel_post, on_chat_member_updated):
        """
        Wire ingestion callbacks into the bot.

        Args:
            on_channel_post: async callable(client, message) for photo posts in channels
            on_chat_member_updated: async callable(client, update) for membership changes
        """
        self.client.add_handler(MessageHandler(on_channel_post, filters.channel & filters.photo))
        self.client.add_handler(ChatMemberUpdatedHandler(on_chat_member_updated))

    async def resolve_download_url(self, file_id: str) -> str:
        return await self.files.resolve_download_url(file_id)

    async def _call_with_retries(self, description: str, call):
        retry_count = 0
        while True:
            try:
                return await call()
            except FloodWait as e:
                retry_count += 1
                if retry_count > self.max_retries:
                    raise MessagingError(f"{description}: rate limited after {self.max_retries} retries") from e
                logger.warning("Rate limited on %s: waiting %s seconds (retry %d/%d)",
                               description, e.value, retry_count, self.max_retries)
                await asyncio.sleep(e.value)
            except RPCError as e:
                raise MessagingError(f"{description}: {e}") from e
            except (OSError, asyncio.TimeoutError) as e:
                # pyrogram re-raises connection errors once its own reconnects are exhausted
                raise MessagingError(f"{description}: connection failed: {e!r}") from e

    async def send_image(self, chat_id: int, filename: str, data: bytes):
        async def send():
            photo = BytesIO(data)
            photo.name = filename
            return await self.client.send_photo(chat_id=chat_id, photo=photo)

        await self._call_with_retries(f"send {filename} to chat {chat_id}", send)
        logger.info("Sent %s to chat %s", filename, chat_id)

    async def delete_messages(self, chat_id: int, message_ids: Iterable[int]):
        ids: List[int] = list(message_ids)
        for start in range(0, len(ids), DELETE_BATCH_SIZE):
            batch = ids[start:start + DELETE_BATCH_SIZE]
            await self._call_with_retries(
                f"delete {len(batch)} message(s) in chat {chat_id}",
                lambda batch=batch: self.client.delete_messages(chat_id=chat_id, message_ids=batch),
            )

    async def start(self):
        await self.client.start()
        logger.info("Telegram bot session %s started.", self.session_name)

    async def stop(self):
        if self.client and self.client.is_connected:
            await self.client.stop()

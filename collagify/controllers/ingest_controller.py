# collagify/controllers/ingest_controller.py
import logging
from datetime import datetime, tzinfo

from collagify.errors import DuplicateChannelError
from collagify.services.store import AggregationStore

logger = logging.getLogger(__name__)


def localize(moment: datetime, zone: tzinfo) -> datetime:
    """Wall-clock time of `moment` in `zone`, without tzinfo. Naive input is read as system local time."""
    return moment.astimezone(zone).replace(tzinfo=None)


async def handle_channel_post(store: AggregationStore, messenger, message, zone: tzinfo) -> bool:
    """Record the photo of a channel post. Returns False when the post carries no photo."""
    photo = getattr(message, "photo", None)
    if photo is None:
        logger.warning("Message %s in chat %s has no photo", message.id, message.chat.id)
        return False

    url = await messenger.resolve_download_url(photo.file_id)
    store.record_link(message.chat.id, message.id, localize(message.date, zone), url)
    logger.info("Recorded photo of message %s in chat %s", message.id, message.chat.id)
    return True


def handle_chat_member_updated(store: AggregationStore, update, zone: tzinfo) -> bool:
    """
    Register the chat when the bot itself was added to it.

    Re-registering a known chat is ignored. Returns True only for a new registration.
    """
    member = getattr(update, "new_chat_member", None)
    if member is None or not member.user.is_self:
        return False

    chat_id = update.chat.id
    try:
        store.register_channel(chat_id, localize(update.date, zone))
    except DuplicateChannelError:
        logger.info("Chat %s is already registered", chat_id)
        return False

    logger.info("Registered chat %s", chat_id)
    return True

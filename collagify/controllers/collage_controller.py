# collagify/controllers/collage_controller.py
import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import httpx

from collagify.errors import CollagifyError, CollageRunError, FetchError
from collagify.schemas import DayGroup, LinkItem
from collagify.services import tiler
from collagify.services.store import AggregationStore

logger = logging.getLogger(__name__)

MAX_COLUMNS = 5


@dataclass
class RunFailure:
    chat_id: int
    day: Optional[str]
    error: BaseException

    def __str__(self):
        scope = f"chat {self.chat_id}" if self.day is None else f"chat {self.chat_id}, day {self.day}"
        return f"{scope}: {self.error}"


@dataclass
class CollageRunReport:
    channels: List[int] = field(default_factory=list)
    collages_sent: int = 0
    failures: List[RunFailure] = field(default_factory=list)

    @property
    def error(self) -> Optional[CollageRunError]:
        if not self.failures:
            return None
        return CollageRunError(self.failures)


def compute_layout(count: int, max_columns: int = MAX_COLUMNS) -> Tuple[int, int]:
    """Grid (rows, cols) for `count` images: rows are capped at `max_columns` wide."""
    if count <= 0:
        return 0, 0
    cols = min(max_columns, count)
    rows = math.ceil(count / cols)
    return rows, cols


def collage_filename(day: str) -> str:
    return f"collage_{day}.jpg"


def describe_http_error(error: httpx.HTTPError) -> str:
    """Short description of a download failure that never includes the URL (it embeds the bot token)."""
    if isinstance(error, httpx.HTTPStatusError):
        return f"HTTP {error.response.status_code}"
    return type(error).__name__


async def fetch_images(http: httpx.AsyncClient, links: List[LinkItem]) -> Tuple[List[bytes], List[FetchError]]:
    images, errors = [], []
    for link in links:
        try:
            response = await http.get(link.url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            reason = describe_http_error(e)
            logger.warning("Downloading image of message %s failed: %s", link.message_id, reason)
            errors.append(FetchError(f"download image of message {link.message_id}: {reason}"))
            continue
        images.append(response.content)
    return images, errors


async def _deliver_group(chat_id, group: DayGroup, messenger, http, report, max_columns, allow_partial):
    images, fetch_errors = await fetch_images(http, group.links)
    for error in fetch_errors:
        report.failures.append(RunFailure(chat_id, group.day, error))

    if fetch_errors and not allow_partial:
        raise FetchError(f"{len(fetch_errors)} of {len(group.urls)} image(s) could not be downloaded")
    if not images:
        raise FetchError("no image of the group could be downloaded")

    rows, cols = compute_layout(len(images), max_columns)
    collage = tiler.concat(images, rows, cols)
    await messenger.send_image(chat_id, collage_filename(group.day), collage)


async def run_collage_cycle(
    store: AggregationStore,
    messenger,
    http: httpx.AsyncClient,
    *,
    max_columns: int = MAX_COLUMNS,
    allow_partial: bool = True,
) -> CollageRunReport:
    """
    Build and send one collage per channel and day, then clean up what was sent.

    Failures are isolated per channel and per day group and collected into the
    returned report; only a failure to list channels aborts the run.

    Args:
        store: The aggregation store holding pending links
        messenger: Messaging client with `send_image` and `delete_messages`
        http: Client used to download the images
        max_columns: Widest row of a collage
        allow_partial: Send a collage even when some of the day's images failed

    Returns:
        The run report; `report.error` joins every failure
    """
    report = CollageRunReport()
    report.channels = store.list_channels()
    logger.info("Collage run started for %d chat(s)", len(report.channels))

    for chat_id in report.channels:
        try:
            drained = store.drain_groups(chat_id)
        except CollagifyError as e:
            logger.error("Reading links of chat %s failed: %s", chat_id, e)
            report.failures.append(RunFailure(chat_id, None, e))
            continue

        delivered: List[int] = []
        for group in drained.groups:
            try:
                await _deliver_group(chat_id, group, messenger, http, report, max_columns, allow_partial)
            except CollagifyError as e:
                logger.error("Collage for chat %s, day %s failed: %s", chat_id, group.day, e)
                report.failures.append(RunFailure(chat_id, group.day, e))
                continue
            report.collages_sent += 1
            delivered.extend(group.message_ids)

        if not delivered:
            continue

        # Rows stay in the store unless the source posts are gone too, so a failure here is retried next run.
        try:
            await messenger.delete_messages(chat_id, delivered)
            store.delete_links(chat_id, delivered)
        except CollagifyError as e:
            logger.error("Cleaning up chat %s failed: %s", chat_id, e)
            report.failures.append(RunFailure(chat_id, None, e))

    logger.info("Collage run finished: %d collage(s) sent, %d failure(s)",
                report.collages_sent, len(report.failures))
    return report


async def run_exclusive(lock: asyncio.Lock, store, messenger, http, **options) -> CollageRunReport:
    """Run one cycle while holding `lock`, so manual and scheduled runs never drain the same rows at once."""
    if lock.locked():
        logger.info("Another collage run is in progress; waiting for it to finish")
    async with lock:
        return await run_collage_cycle(store, messenger, http, **options)


async def run_scheduled(store, messenger, http, *, lock: asyncio.Lock, max_columns=MAX_COLUMNS, allow_partial=True):
    """Scheduler entry point: run once and log the outcome instead of raising."""
    try:
        report = await run_exclusive(
            lock, store, messenger, http, max_columns=max_columns, allow_partial=allow_partial
        )
    except CollagifyError as e:
        logger.error("Collage run aborted: %s", e)
        return e

    error = report.error
    if error is not None:
        logger.error("%s", error)
    return error

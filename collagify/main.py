# collagify/main.py
import asyncio
import logging

import httpx
from fastapi import FastAPI

from .config import settings
from .controllers import collage_controller, ingest_controller
from .errors import CollagifyError
from .routers import collage_router
from .services.scheduler import DailyScheduler
from .services.store import AggregationStore
from .services.telegram_service import TelegramService

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
# httpx logs every request URL at INFO; download URLs carry the bot token
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Collagify",
    description="Collects the photos posted to Telegram channels and sends one collage per channel and day.",
    version="1.0.0",
)

app.include_router(collage_router.router, tags=["Collage"])


@app.on_event("startup")
async def on_startup():
    # A store that cannot be opened is fatal: let the exception stop the process.
    store = AggregationStore(settings.database_url)
    http = httpx.AsyncClient(timeout=settings.fetch_timeout_seconds)
    telegram = TelegramService(http)
    run_lock = asyncio.Lock()

    async def on_channel_post(client, message):
        try:
            await ingest_controller.handle_channel_post(store, telegram, message, settings.zone)
        except CollagifyError as e:
            logger.error("Saving photo of message %s failed: %s", message.id, e)

    async def on_chat_member_updated(client, update):
        try:
            ingest_controller.handle_chat_member_updated(store, update, settings.zone)
        except CollagifyError as e:
            logger.error("Registering chat %s failed: %s", update.chat.id, e)

    async def scheduled_run():
        await collage_controller.run_scheduled(
            store,
            telegram,
            http,
            lock=run_lock,
            max_columns=settings.max_columns,
            allow_partial=settings.allow_partial_collage,
        )

    telegram.add_handlers(on_channel_post, on_chat_member_updated)
    await telegram.start()

    scheduler = DailyScheduler(settings.collage_clock, settings.zone, scheduled_run)
    scheduler.start()

    app.state.store = store
    app.state.http = http
    app.state.telegram = telegram
    app.state.scheduler = scheduler
    app.state.run_lock = run_lock
    logger.info("Collagify started; collages are sent daily at %s (%s).", settings.collage_time, settings.timezone)


@app.on_event("shutdown")
async def on_shutdown():
    await app.state.scheduler.stop()
    await app.state.telegram.stop()
    await app.state.http.aclose()
    app.state.store.close()
    logger.info("Collagify stopped.")


@app.get("/")
def read_root():
    return {"message": "Collagify is running. Use the /collage endpoint to build collages now."}

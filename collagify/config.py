# collagify/config.py
from datetime import time
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    bot_token: str
    api_id: int
    api_hash: str
    database_url: str = "sqlite:///collagify.sqlite"

    # Day boundaries are computed in this zone; timestamps are normalised to it at ingestion
    timezone: str = "Europe/Moscow"
    collage_time: str = "17:27"  # HH:MM, local to `timezone`

    max_columns: int = 5
    allow_partial_collage: bool = True  # Send a collage even if some images failed to download

    telegram_api_server: str = "https://api.telegram.org"
    fetch_timeout_seconds: float = 30.0
    max_send_retries: int = 3       # Maximum retries on FloodWait
    session_name: str = "collagify_bot_session"

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def collage_clock(self) -> time:
        hours, minutes = self.collage_time.split(":")
        return time(int(hours), int(minutes))

    class Config:
        env_file = ".env"

settings = Settings()

# collagify/services/bot_api.py
import httpx

from collagify.errors import MessagingError


class BotApiFiles:
    """Turns Telegram file ids into HTTP download links through the Bot API."""

    def __init__(self, http: httpx.AsyncClient, bot_token: str, server: str = "https://api.telegram.org"):
        self.http = http
        self.bot_token = bot_token
        self.server = server.rstrip("/")

    def download_link(self, file_path: str) -> str:
        return f"{self.server}/file/bot{self.bot_token}/{file_path}"

    async def resolve_download_url(self, file_id: str) -> str:
        try:
            response = await self.http.post(
                f"{self.server}/bot{self.bot_token}/getFile",
                data={"file_id": file_id},
            )
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise MessagingError(f"get file info for {file_id}: {e}") from e

        if not payload.get("ok"):
            raise MessagingError(f"get file info for {file_id}: {payload.get('description', 'unknown error')}")

        file_path = payload.get("result", {}).get("file_path")
        if not file_path:
            raise MessagingError(f"get file info for {file_id}: no file_path in response")
        return self.download_link(file_path)

"""
Trade notifications.

Messages always go to the log; with a bot token and chat id they are also
posted to Telegram. Delivery failures are logged and never interrupt trading.
"""

import logging
from typing import Optional

try:
    import httpx
except ImportError:
    raise ImportError("httpx is required. Install with: pip install httpx")

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"


class Notifier:
    """Log-only notifier"""

    async def send(self, message: str):
        logger.info(message)

    async def close(self):
        pass


class TelegramNotifier(Notifier):
    """Logs and forwards messages to a Telegram chat."""

    def __init__(
        self,
        token: str,
        chat_id: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.chat_id = chat_id
        self._url = f"{TELEGRAM_API}/bot{token}/sendMessage"
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def send(self, message: str):
        await super().send(message)
        try:
            response = await self._client.post(self._url, json={"chat_id": self.chat_id, "text": message})
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Telegram delivery failed: {e}")

    async def close(self):
        await self._client.aclose()


def build_notifier(config) -> Notifier:
    if config.telegram_enabled:
        return TelegramNotifier(config.telegram_bot_token, config.telegram_chat_id)
    return Notifier()

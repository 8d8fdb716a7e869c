"""Notifier service - sends alert messages to a Telegram chat."""
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"


class TelegramNotifier:
    """Best-effort sender of HTML-formatted messages via the Telegram Bot API.

    ``send`` never raises: an unconfigured channel, a non-2xx response or a
    transport error all come back as ``False`` so callers can log the outcome.
    """

    channel = "telegram"

    def __init__(
        self,
        bot_token: Optional[str] = None,
        chat_id: Optional[str] = None,
        timeout: float = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.timeout = timeout
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    async def send(self, text: str) -> bool:
        """Send a message. Returns True if Telegram accepted it."""
        if not self.is_configured:
            logger.debug("Telegram not configured, skipping alert")
            return False

        payload = {
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        url = f"{TELEGRAM_API_URL}/bot{self.bot_token}/sendMessage"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload)
                if response.is_success:
                    logger.info("Telegram alert sent")
                    return True
                else:
                    logger.warning(f"Telegram returned {response.status_code}: {response.text[:200]}")
                    return False
        except Exception as e:
            logger.error(f"Failed to send Telegram alert: {e}")
            return False

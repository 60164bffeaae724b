"""
Rainwatch - Telegram Channel

Posts rain alerts to one or more chats through the Bot API ``sendMessage`` call.
"""

import logging
from typing import Any, Dict, Iterable, Optional, Set

import httpx

from rainwatch.delivery.channels import Notifier
from rainwatch.settings import settings

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"
SEND_TIMEOUT = 10.0


def parse_chat_ids(raw: str) -> Set[int]:
    """Parse a comma separated list such as ``"111, 222"``; malformed input yields no chats."""
    parts = [part.strip() for part in raw.split(",")]
    try:
        return {int(part) for part in parts if part}
    except ValueError:
        logger.warning(f"Ignoring malformed TELEGRAM_USER_ID: {raw!r}")
        return set()


def format_alert(title: str, body: str) -> str:
    # Plain text; location names may contain Markdown control characters
    return f"🌧️ {title}\n{body}"


class TelegramNotifier(Notifier):
    """
    Telegram delivery channel.

    ``config`` may carry ``bot_token`` and ``chat_ids``; missing values come
    from ``TELEGRAM_BOT_TOKEN`` and ``TELEGRAM_USER_ID``. The channel is only
    authorised once both a token and a chat are known.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, client: Optional[httpx.AsyncClient] = None):
        super().__init__("telegram", config)
        self._client = client

        self.bot_token = self.config.get("bot_token") or settings.TELEGRAM_BOT_TOKEN
        configured: Iterable[int] = self.config.get("chat_ids") or ()
        self.chat_ids = set(configured) or parse_chat_ids(settings.TELEGRAM_USER_ID)

        if not self.bot_token:
            logger.warning("No Telegram bot token configured, the channel stays silent")

    @property
    def send_url(self) -> str:
        return f"{TELEGRAM_API}/bot{self.bot_token}/sendMessage"

    def _is_authorized(self) -> bool:
        return bool(self.bot_token and self.chat_ids)

    async def _deliver(self, title: str, body: str) -> bool:
        text = format_alert(title, body)
        if self._client is None:
            async with httpx.AsyncClient(timeout=SEND_TIMEOUT) as client:
                return await self._broadcast(client, text)
        return await self._broadcast(self._client, text)

    async def _broadcast(self, client: httpx.AsyncClient, text: str) -> bool:
        failed = []
        for chat_id in sorted(self.chat_ids):
            try:
                response = await client.post(self.send_url, json={"chat_id": chat_id, "text": text})
            except httpx.HTTPError as e:
                failed.append(chat_id)
                logger.error(f"[DELIVERY] Telegram unreachable for chat {chat_id}: {e}")
                continue
            if response.status_code != 200:
                failed.append(chat_id)
                logger.error(f"[DELIVERY] Telegram rejected alert for chat {chat_id}: HTTP {response.status_code}")
            else:
                logger.info(f"[DELIVERY] Alert posted to Telegram chat {chat_id}")
        return not failed

"""Telegram Bot API chat transport."""
import json
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ..config import TelegramConfig

logger = logging.getLogger(__name__)

API_BASE = "https://api.telegram.org"
NOT_MODIFIED = "message is not modified"


class TelegramTransport:
    """Send and edit Markdown messages with inline keyboards via a bot."""

    def __init__(self, config: TelegramConfig, api_base: str = API_BASE) -> None:
        self.bot_token = config.bot_token
        self.default_chat_id = config.chat_id
        self.api_base = api_base

    async def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any] | None:
        """POST a Bot API method; returns the decoded body or None on transport failure."""
        if not self.bot_token:
            logger.warning("Telegram bot token not configured")
            return None

        url = f"{self.api_base}/bot{self.bot_token}/{method}"
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.post(url, json=payload) as response:
                    body = await response.json(content_type=None)
                    if response.status != 200:
                        description = body.get("description", "") if isinstance(body, dict) else ""
                        if NOT_MODIFIED in description:
                            return {"ok": True, "result": None}
                        logger.error(
                            "Telegram %s failed: %s %s", method, response.status, description
                        )
                        return None
                    return body
        except (aiohttp.ClientError, json.JSONDecodeError) as e:
            logger.error("Telegram %s request error: %s", method, e)
            return None

    @staticmethod
    def _payload(chat_id: str, text: str, keyboard: list | None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": "Markdown",
            "disable_web_page_preview": True,
        }
        if keyboard:
            payload["reply_markup"] = {"inline_keyboard": keyboard}
        return payload

    async def send_message(
        self, chat_id: str, text: str, keyboard: list | None = None
    ) -> int | None:
        """Send a message; returns its message id, or None if it was not delivered."""
        body = await self._call("sendMessage", self._payload(chat_id or self.default_chat_id, text, keyboard))
        if not body:
            return None
        result = body.get("result") or {}
        return result.get("message_id")

    async def edit_message(
        self, chat_id: str, message_id: Any, text: str, keyboard: list | None = None
    ) -> bool:
        payload = self._payload(chat_id or self.default_chat_id, text, keyboard)
        payload["message_id"] = message_id
        return await self._call("editMessageText", payload) is not None

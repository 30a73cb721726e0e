"""Telegram bot-mention logger.

Long-polls getUpdates and logs every message that mentions the bot, with an
optional short acknowledgement reply in the same chat and thread.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from adapters.telegram_bot_destination import TelegramBotDestination
from core.config import MentionConfig
from core.errors import DestinationCallFailure

LOGGER = logging.getLogger(__name__)

POLL_TIMEOUT = 30
RETRY_DELAY = 5.0


def extract_mentions(message: dict[str, Any]) -> list[str]:
    """Return the lower-cased @mentions of a Bot API message."""

    text = message.get("text")
    entities = message.get("entities")
    if not text or not entities:
        return []
    mentions = []
    for entity in entities:
        if entity.get("type") != "mention":
            continue
        # Entity offsets are measured in UTF-16 code units.
        encoded = text.encode("utf-16-le")
        start = entity["offset"] * 2
        end = start + entity["length"] * 2
        mentions.append(encoded[start:end].decode("utf-16-le").lower())
    return mentions


class MentionLogger:
    """Watch Telegram updates for mentions of the relay bot."""

    def __init__(self, destination: TelegramBotDestination, config: MentionConfig) -> None:
        self._destination = destination
        self._config = config
        self._offset: Optional[int] = None
        self._username: Optional[str] = None

    async def start(self) -> None:
        me = await self._destination.get_me()
        self._username = f"@{(me.get('username') or '').lower()}"
        LOGGER.info("Telegram bot %s started listening for mentions", self._username)

    async def poll_once(self) -> int:
        """Fetch one batch of updates; return how many mentions were handled."""

        payload: dict[str, Any] = {"timeout": POLL_TIMEOUT, "allowed_updates": ["message"]}
        if self._offset is not None:
            payload["offset"] = self._offset
        updates = await self._destination.call("getUpdates", payload, timeout=POLL_TIMEOUT + 10)

        handled = 0
        for update in updates or []:
            self._offset = update["update_id"] + 1
            message = update.get("message")
            if message and await self.handle_message(message):
                handled += 1
        return handled

    async def handle_message(self, message: dict[str, Any]) -> bool:
        if self._username is None or self._username not in extract_mentions(message):
            return False

        sender = message.get("from") or {}
        chat = message.get("chat") or {}
        thread_id = message.get("message_thread_id")
        LOGGER.info(
            "Bot mention detected: user=%s (@%s) chat=%s (%s, %s) thread=%s message=%s text=%r",
            sender.get("id"),
            sender.get("username"),
            chat.get("id"),
            chat.get("type"),
            chat.get("title"),
            thread_id,
            message.get("message_id"),
            message.get("text"),
        )

        if self._config.reply:
            payload: dict[str, Any] = {
                "chat_id": chat.get("id"),
                "text": f"Mention registered [{message.get('message_id')}]",
                "reply_to_message_id": message.get("message_id"),
            }
            if thread_id is not None:
                payload["message_thread_id"] = thread_id
            try:
                await self._destination.call("sendMessage", payload)
            except DestinationCallFailure as exc:
                LOGGER.warning("Failed to acknowledge mention %s: %s", message.get("message_id"), exc)
        return True

    async def run(self) -> None:
        """Poll until cancelled; polling errors are logged and retried."""

        await self.start()
        while True:
            try:
                await self.poll_once()
            except DestinationCallFailure as exc:
                LOGGER.error("Telegram polling error: %s", exc)
                await asyncio.sleep(RETRY_DELAY)

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

from core.errors import DestinationCallFailure
from core.models import DeliveryReceipt, MediaItem, SourceMessage


class FakeDestination:
    def __init__(self, first_id: int = 1000) -> None:
        self.next_id = first_id
        self.calls: list[tuple] = []
        self.fail_send = False
        self.fail_delete: set[int] = set()
        self.titles: dict = {}

    def _receipt(self) -> DeliveryReceipt:
        self.next_id += 1
        return DeliveryReceipt(message_id=self.next_id)

    async def send_text(self, chat_id, text: str, thread_id: Optional[int] = None) -> DeliveryReceipt:
        self.calls.append(("send_text", chat_id, text, thread_id))
        if self.fail_send:
            raise DestinationCallFailure("sendMessage", "Too Many Requests", 429)
        return self._receipt()

    async def send_media_group(
        self, chat_id, items: Sequence[MediaItem], thread_id: Optional[int] = None
    ) -> list[DeliveryReceipt]:
        self.calls.append(("send_media_group", chat_id, list(items), thread_id))
        if self.fail_send:
            raise DestinationCallFailure("sendMediaGroup", "Bad Request", 400)
        return [self._receipt() for _ in items]

    async def delete_message(self, chat_id, message_id: int, thread_id: Optional[int] = None) -> None:
        self.calls.append(("delete_message", chat_id, message_id, thread_id))
        # Yield so concurrently issued deletes interleave like real requests.
        await asyncio.sleep(0)
        if message_id in self.fail_delete:
            raise DestinationCallFailure("deleteMessage", "message to delete not found", 400)

    async def get_chat_title(self, chat_id) -> str:
        if chat_id not in self.titles:
            raise DestinationCallFailure("getChat", "chat not found", 400)
        return self.titles[chat_id]

    def calls_named(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]


class FakeSource:
    def __init__(self, history: dict[str, list[SourceMessage]]) -> None:
        self.history = history
        self.fetches: list[tuple[str, int]] = []

    async def fetch_recent_messages(self, channel_id: str, limit: int) -> list[SourceMessage]:
        self.fetches.append((channel_id, limit))
        if channel_id not in self.history:
            raise RuntimeError(f"unknown channel {channel_id}")
        # Newest first, like the platform.
        return list(reversed(self.history[channel_id]))[:limit]

    async def fetch_message(self, channel_id: str, message_id: str) -> Optional[SourceMessage]:
        for message in self.history.get(channel_id, []):
            if message.message_id == message_id:
                return message
        return None


async def no_sleep(_: float) -> None:
    return None

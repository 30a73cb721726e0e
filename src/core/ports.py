"""Ports (interfaces) used by the core relay.

Ports define the minimal contracts for the source and destination adapters so
that the core can be reused with different platforms.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from core.models import ChatId, DeliveryReceipt, MediaItem, SourceMessage


class DestinationPort(Protocol):
    """Destination-platform operations required by the relay engine."""

    async def send_text(self, chat_id: ChatId, text: str, thread_id: Optional[int] = None) -> DeliveryReceipt:
        ...

    async def send_media_group(
        self,
        chat_id: ChatId,
        items: Sequence[MediaItem],
        thread_id: Optional[int] = None,
    ) -> list[DeliveryReceipt]:
        ...

    async def delete_message(self, chat_id: ChatId, message_id: int, thread_id: Optional[int] = None) -> None:
        ...

    async def get_chat_title(self, chat_id: ChatId) -> str:
        ...


class SourcePort(Protocol):
    """Source-platform history access required by the backfill coordinator."""

    async def fetch_recent_messages(self, channel_id: str, limit: int) -> list[SourceMessage]:
        """Return up to limit messages, newest first."""
        ...

    async def fetch_message(self, channel_id: str, message_id: str) -> Optional[SourceMessage]:
        ...

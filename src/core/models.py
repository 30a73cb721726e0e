"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to Discord or Telegram SDK types.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

ChatId = Union[int, str]


class EventKind(Enum):
    """Kind of source event being evaluated by the relay policy."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class Attachment:
    """A single source attachment; kind is photo, video or document."""

    url: str
    kind: str = "photo"


@dataclass(frozen=True)
class SourceMessage:
    """Minimal source message used by the core relay pipeline."""

    message_id: str
    channel_id: str
    author_name: str
    text: str
    attachments: Tuple[Attachment, ...] = ()

    @property
    def has_content(self) -> bool:
        return bool(self.text) or bool(self.attachments)


@dataclass(frozen=True)
class ChannelPairing:
    """One source channel paired with one destination chat (and thread)."""

    source_channel_id: str
    destination_chat_id: ChatId
    destination_thread_id: Optional[int] = None


@dataclass(frozen=True)
class DeliveryRecord:
    """Destination messages produced by one source message.

    Records are replaced wholesale on update, never modified in place.
    """

    primary_message_id: int
    auxiliary_message_ids: Tuple[int, ...]
    destination_chat_id: str
    destination_thread_id: Optional[int] = None

    @property
    def message_ids(self) -> Tuple[int, ...]:
        return (self.primary_message_id, *self.auxiliary_message_ids)


@dataclass(frozen=True)
class MediaItem:
    """One entry of a grouped media delivery."""

    url: str
    kind: str = "photo"
    caption: Optional[str] = None


@dataclass(frozen=True)
class DeliveryReceipt:
    """Destination acknowledgement for one delivered message."""

    message_id: int


@dataclass(frozen=True)
class RelayedMessage:
    """A source message relayed during backfill."""

    source_id: str
    destination_chat_id: str


@dataclass(frozen=True)
class ReversalSummary:
    """Outcome counters of a backfill reversal pass."""

    attempted: int
    succeeded: int
    failed: int
    missing: int

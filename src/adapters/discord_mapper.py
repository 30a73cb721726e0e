"""Discord-to-core message mapping adapter.

This keeps discord.py-specific details out of the core pipeline.
"""

from __future__ import annotations

from typing import Any, Optional

from core.models import Attachment, SourceMessage


def attachment_kind(content_type: Optional[str]) -> str:
    """Map a Discord attachment content type to a destination media kind."""

    if not content_type:
        return "document"
    if content_type.startswith("image/"):
        # Animated GIFs are rejected as Telegram photos.
        return "document" if content_type == "image/gif" else "photo"
    if content_type.startswith("video/"):
        return "video"
    return "document"


def _author_name(message: Any) -> str:
    author = getattr(message, "author", None)
    for attribute in ("display_name", "global_name", "name"):
        value = getattr(author, attribute, None)
        if isinstance(value, str) and value:
            return value
    return "unknown"


def build_source_message(message: Any) -> SourceMessage:
    """Build a core SourceMessage from a discord.py Message."""

    attachments = tuple(
        Attachment(url=attachment.url, kind=attachment_kind(getattr(attachment, "content_type", None)))
        for attachment in getattr(message, "attachments", None) or ()
    )
    return SourceMessage(
        message_id=str(message.id),
        channel_id=str(message.channel.id),
        author_name=_author_name(message),
        text=message.content or "",
        attachments=attachments,
    )

"""Discord history adapter.

Implements the core SourcePort on top of a connected discord.py client and
reports channel permissions for the startup access check.
"""

from __future__ import annotations

import logging
from typing import Optional

import discord

from adapters.discord_mapper import build_source_message
from core.models import SourceMessage

LOGGER = logging.getLogger(__name__)

CHECKED_PERMISSIONS = (
    "view_channel",
    "read_message_history",
    "send_messages",
    "attach_files",
    "embed_links",
)


class DiscordHistorySource:
    """Read recent and single messages from paired Discord channels."""

    def __init__(self, client: discord.Client) -> None:
        self._client = client

    async def _resolve_channel(self, channel_id: str) -> Optional[discord.abc.Messageable]:
        channel = self._client.get_channel(int(channel_id))
        if channel is None:
            try:
                channel = await self._client.fetch_channel(int(channel_id))
            except discord.HTTPException:
                LOGGER.exception("Failed to fetch channel %s", channel_id)
                return None
        if not isinstance(channel, discord.abc.Messageable):
            LOGGER.error("Channel %s is not a text channel", channel_id)
            return None
        return channel

    async def fetch_recent_messages(self, channel_id: str, limit: int) -> list[SourceMessage]:
        """Return up to limit messages, newest first."""

        channel = await self._resolve_channel(channel_id)
        if channel is None:
            return []
        messages = [build_source_message(message) async for message in channel.history(limit=limit)]
        LOGGER.debug("Fetched %s message(s) from channel %s", len(messages), channel_id)
        return messages

    async def fetch_message(self, channel_id: str, message_id: str) -> Optional[SourceMessage]:
        channel = await self._resolve_channel(channel_id)
        if channel is None:
            return None
        try:
            message = await channel.fetch_message(int(message_id))
        except discord.NotFound:
            return None
        return build_source_message(message)

    async def describe_access(self, channel_id: str) -> Optional[dict[str, bool]]:
        """Return the bot's relevant permissions in a channel, or None."""

        channel = await self._resolve_channel(channel_id)
        if channel is None or self._client.user is None:
            return None
        guild = getattr(channel, "guild", None)
        # guild.me is always cached, unlike arbitrary members without the members intent.
        member = getattr(guild, "me", None)
        if member is None or not hasattr(channel, "permissions_for"):
            return None
        permissions = channel.permissions_for(member)
        return {name: bool(getattr(permissions, name)) for name in CHECKED_PERMISSIONS}

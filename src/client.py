"""Client factories for telebridge.

We explicitly manage the clients' lifecycle (start/close) so it is obvious
when connections are opened and when they end.
"""

from __future__ import annotations

import logging

import discord

from adapters.telegram_bot_destination import TelegramBotDestination

HTTP_TIMEOUT = 30.0


def build_discord_client() -> discord.Client:
    """Create a discord.py client with the intents the relay needs.

    Message content is a privileged intent and must also be enabled for the
    bot in the Discord developer portal.
    """

    intents = discord.Intents.none()
    intents.guilds = True
    intents.guild_messages = True
    intents.message_content = True

    logging.getLogger(__name__).info("Initializing Discord client")

    return discord.Client(intents=intents)


def build_telegram_destination(bot_token: str) -> TelegramBotDestination:
    """Create the Telegram Bot API adapter with its own HTTP client."""

    logging.getLogger(__name__).info("Initializing Telegram Bot API client")

    return TelegramBotDestination(bot_token, timeout=HTTP_TIMEOUT)

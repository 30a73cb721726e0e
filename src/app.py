"""Application entry point for the telebridge relay."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

import discord
from art import tprint

import settings
from adapters.discord_mapper import build_source_message
from adapters.discord_source import DiscordHistorySource
from adapters.telegram_bot_destination import TelegramBotDestination
from adapters.telegram_mentions import MentionLogger
from client import build_discord_client, build_telegram_destination
from core.backfill import BackfillCoordinator
from core.bridge import RelayBridge
from core.config import LoggingConfig
from core.errors import ConfigurationError, DestinationCallFailure
from core.pairings import ChannelPairingTable
from core.processor import RelayEngine
from core.store import CorrelationStore

NAME = "TELEBRIDGE"
FONT = "tarty-1"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
THREAD_PROBE_TEXT = "Checking thread access..."


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(app_settings: settings.AppSettings) -> list[str]:
    # Bot tokens are always masked; the Telegram one is part of every API URL.
    values = [app_settings.discord_token, app_settings.telegram_token]
    for name in app_settings.logging.redact_env:
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging(config: LoggingConfig, secrets: list[str]) -> None:
    if not config.enabled:
        return

    level = getattr(logging, config.level, logging.INFO)
    formatter = _RedactingFormatter(secrets, fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    handlers: list[logging.Handler] = []

    if config.console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    if config.file.enabled:
        path = config.file.path
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        file_handler = RotatingFileHandler(
            path,
            maxBytes=config.file.max_bytes,
            backupCount=config.file.backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers, force=True)
    # Transport libraries are chatty at INFO; keep them to warnings.
    for name in ("discord", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def _is_content_edit(payload: Any) -> bool:
    """Link-preview unfurls also arrive as edits, without an edit timestamp."""

    data = getattr(payload, "data", None) or {}
    return data.get("edited_timestamp") is not None


async def _check_access(
    source: DiscordHistorySource,
    destination: TelegramBotDestination,
    pairings: ChannelPairingTable,
) -> None:
    """Log what the bots can see and do for every pairing."""

    logger = logging.getLogger(__name__)
    for pairing in pairings:
        permissions = await source.describe_access(pairing.source_channel_id)
        if permissions is None:
            logger.error("No access to Discord channel %s", pairing.source_channel_id)
        else:
            logger.info("Permissions for Discord channel %s: %s", pairing.source_channel_id, permissions)

        try:
            chat = await destination.get_chat(pairing.destination_chat_id)
        except DestinationCallFailure as exc:
            logger.error("No access to Telegram chat %s: %s", pairing.destination_chat_id, exc)
            continue
        logger.info(
            "Telegram chat %s: title=%s, type=%s, is_forum=%s",
            pairing.destination_chat_id,
            chat.get("title"),
            chat.get("type"),
            chat.get("is_forum", False),
        )

        if pairing.destination_thread_id is None:
            continue
        # A thread is only usable if the bot can post into it; send a check message and clean up.
        try:
            receipt = await destination.send_text(
                pairing.destination_chat_id,
                THREAD_PROBE_TEXT,
                pairing.destination_thread_id,
            )
            await destination.delete_message(pairing.destination_chat_id, receipt.message_id)
        except DestinationCallFailure as exc:
            logger.error("Thread %s is not accessible: %s", pairing.destination_thread_id, exc)
        else:
            logger.info("Thread %s is accessible", pairing.destination_thread_id)


async def _watch_mentions(mention_logger: MentionLogger) -> None:
    try:
        await mention_logger.run()
    except asyncio.CancelledError:
        raise
    except Exception:
        logging.getLogger(__name__).exception("Mention logger stopped")


async def _serve(app_settings: settings.AppSettings, check_only: bool = False) -> None:
    logger = logging.getLogger(__name__)

    destination = build_telegram_destination(app_settings.telegram_token)
    client = build_discord_client()
    source = DiscordHistorySource(client)

    # The store is passed by reference; the engine is its only writer.
    store = CorrelationStore()
    engine = RelayEngine(app_settings.pairings, store, destination)
    backfill = BackfillCoordinator(
        engine,
        source,
        destination,
        send_delay=app_settings.backfill.send_delay,
    )
    bridge = RelayBridge(engine, backfill, app_settings.backfill)
    access_checked = False

    @client.event
    async def on_ready() -> None:
        nonlocal access_checked
        logger.info("Discord client connected as %s", client.user)
        try:
            if not access_checked:
                access_checked = True
                await _check_access(source, destination, app_settings.pairings)
        except Exception:
            logger.exception("Access check failed")
        finally:
            if check_only:
                await client.close()
        if check_only:
            return
        await bridge.on_ready()

    @client.event
    async def on_message(message: discord.Message) -> None:
        await bridge.on_message_created(build_source_message(message))

    @client.event
    async def on_raw_message_edit(payload: discord.RawMessageUpdateEvent) -> None:
        channel_id = str(payload.channel_id)
        if not engine.is_paired(channel_id) or not _is_content_edit(payload):
            return
        # Re-fetch so edits of uncached (e.g. backfilled) messages carry full content.
        try:
            message = await source.fetch_message(channel_id, str(payload.message_id))
        except discord.HTTPException:
            logger.exception("Failed to fetch edited message %s", payload.message_id)
            return
        if message is None:
            return
        await bridge.on_message_updated(message)

    @client.event
    async def on_raw_message_delete(payload: discord.RawMessageDeleteEvent) -> None:
        await bridge.on_message_deleted(str(payload.channel_id), str(payload.message_id))

    @client.event
    async def on_raw_bulk_message_delete(payload: discord.RawBulkMessageDeleteEvent) -> None:
        for message_id in sorted(payload.message_ids):
            await bridge.on_message_deleted(str(payload.channel_id), str(message_id))

    mention_task: Optional[asyncio.Task] = None
    if app_settings.mentions.enabled and not check_only:
        mention_task = asyncio.create_task(_watch_mentions(MentionLogger(destination, app_settings.mentions)))

    try:
        async with client:
            await client.start(app_settings.discord_token)
    finally:
        if mention_task is not None:
            mention_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await mention_task
        await destination.aclose()


def _start(config_path: Optional[str], check_only: bool) -> int:
    _print_banner()
    logger = logging.getLogger(__name__)

    try:
        app_settings = settings.load_settings(config_path)
    except ConfigurationError as exc:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
        logger.error("Configuration error: %s", exc)
        return 1

    _configure_logging(app_settings.logging, _collect_redaction_values(app_settings))
    logger.info("Starting telebridge with %s channel pair(s)", len(app_settings.pairings))

    try:
        asyncio.run(_serve(app_settings, check_only=check_only))
    except KeyboardInterrupt:
        logger.info("Bot stopped")
        return 0
    except discord.LoginFailure:
        logger.error("Discord rejected the bot token")
        return 1
    except Exception:
        logger.exception("Unrecoverable startup error")
        return 1
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="telebridge")
    parser.add_argument("--config", help="Path to config.json (default: project root)")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the relay")
    subparsers.add_parser(
        "check",
        help="Verify access to every paired Discord channel and Telegram chat, then exit.",
    )

    args = parser.parse_args(argv)
    raise SystemExit(_start(args.config, check_only=args.command == "check"))


if __name__ == "__main__":
    main()

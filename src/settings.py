"""Configuration loading for telebridge.

Channel pairs and runtime options live in a single JSON file; bot tokens may
also come from the environment (or a .env file) to keep secrets out of it.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Optional

from dotenv import load_dotenv

from core.config import BackfillConfig, FileLogConfig, LoggingConfig, MentionConfig
from core.errors import ConfigurationError
from core.models import ChannelPairing
from core.pairings import ChannelPairingTable

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Default config location; TELEBRIDGE_CONFIG or --config override it.
CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")

TOKEN_KEYS = ("DISCORD_TOKEN", "TELEGRAM_TOKEN")
REQUIRED_KEYS = (*TOKEN_KEYS, "CHANNEL_PAIRS")


@dataclass(frozen=True)
class AppSettings:
    """Validated configuration consumed by the app layer."""

    discord_token: str
    telegram_token: str
    pairings: ChannelPairingTable
    backfill: BackfillConfig
    mentions: MentionConfig
    logging: LoggingConfig


def _load_json_config(path: str) -> dict:
    """Load the JSON config file; any failure is a configuration error."""

    if not os.path.exists(path):
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as handle:
            raw = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Failed to read config {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError("Config root must be a JSON object")
    return raw


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, str):
        try:
            int(value.strip())
        except ValueError:
            return False
        return True
    return False


def _parse_pairing(entry: Any, index: int) -> ChannelPairing:
    position = f"pair #{index}"
    if not isinstance(entry, dict):
        raise ConfigurationError(f"{position} must be an object")

    channel_id = entry.get("DISCORD_CHANNEL_ID")
    if channel_id is None or channel_id == "":
        raise ConfigurationError(f"Missing DISCORD_CHANNEL_ID in {position}")
    # Discord snowflakes exceed JSON-safe integers, so ids must be quoted.
    if not isinstance(channel_id, str):
        raise ConfigurationError(f"DISCORD_CHANNEL_ID must be a string in {position}")
    if not channel_id.strip().isdigit():
        raise ConfigurationError(f"DISCORD_CHANNEL_ID must be a numeric id in {position}")

    chat_id = entry.get("TELEGRAM_CHAT_ID")
    if chat_id is None or chat_id == "":
        raise ConfigurationError(f"Missing TELEGRAM_CHAT_ID in {position}")
    if not _is_number(chat_id):
        raise ConfigurationError(f"TELEGRAM_CHAT_ID must be a number in {position}")

    thread_id = entry.get("TELEGRAM_THREAD_ID")
    if thread_id is not None and not _is_number(thread_id):
        raise ConfigurationError(f"TELEGRAM_THREAD_ID must be a number in {position}")

    return ChannelPairing(
        source_channel_id=channel_id.strip(),
        destination_chat_id=int(chat_id),
        destination_thread_id=int(thread_id) if thread_id is not None else None,
    )


def _non_negative(section: dict, key: str, default: float, name: str) -> float:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ConfigurationError(f"{name}.{key} must be a non-negative number")
    return float(value)


def _parse_backfill(raw: dict) -> BackfillConfig:
    section = raw.get("backfill", {}) or {}
    limit = section.get("limit", 1)
    if not isinstance(limit, int) or isinstance(limit, bool) or limit < 0:
        raise ConfigurationError("backfill.limit must be a non-negative integer")
    return BackfillConfig(
        enabled=bool(section.get("enabled", True)),
        limit=limit,
        auto_delete=bool(section.get("auto_delete", True)),
        delete_after=_non_negative(section, "delete_after_ms", 5000, "backfill") / 1000,
        send_delay=_non_negative(section, "send_delay_ms", 500, "backfill") / 1000,
    )


def _parse_logging(raw: dict) -> LoggingConfig:
    section = raw.get("logging", {}) or {}
    file_cfg = section.get("file", {}) or {}
    redact_cfg = section.get("redact", {}) or {}
    return LoggingConfig(
        enabled=bool(section.get("enabled", True)),
        level=str(section.get("level", "INFO")).upper(),
        console=bool(section.get("console", True)),
        file=FileLogConfig(
            enabled=bool(file_cfg.get("enabled", False)),
            path=str(file_cfg.get("path", "logs/telebridge.log")),
            max_bytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
            backup_count=int(file_cfg.get("backup_count", 5)),
        ),
        redact_env=tuple(redact_cfg.get("patterns", [])),
    )


def validate_config(raw: dict, environ: Optional[dict] = None) -> AppSettings:
    """Validate a raw config mapping and build typed settings.

    Tokens found in environ take precedence over the file values.
    """

    environ = os.environ if environ is None else environ
    merged = dict(raw)
    for key in TOKEN_KEYS:
        if environ.get(key):
            merged[key] = environ[key]

    for key in REQUIRED_KEYS:
        if merged.get(key) is None or merged.get(key) == "":
            raise ConfigurationError(f"Missing required root key: {key}")
    for key in TOKEN_KEYS:
        if not isinstance(merged[key], str):
            raise ConfigurationError(f"{key} must be a string")

    raw_pairs = merged["CHANNEL_PAIRS"]
    if not isinstance(raw_pairs, list):
        raise ConfigurationError("CHANNEL_PAIRS must be a list")
    if not raw_pairs:
        raise ConfigurationError("CHANNEL_PAIRS must not be empty")

    pairings = [_parse_pairing(entry, index) for index, entry in enumerate(raw_pairs, start=1)]
    try:
        table = ChannelPairingTable(pairings)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc

    mentions = merged.get("mentions", {}) or {}
    return AppSettings(
        discord_token=merged["DISCORD_TOKEN"],
        telegram_token=merged["TELEGRAM_TOKEN"],
        pairings=table,
        backfill=_parse_backfill(merged),
        mentions=MentionConfig(
            enabled=bool(mentions.get("enabled", False)),
            reply=bool(mentions.get("reply", True)),
        ),
        logging=_parse_logging(merged),
    )


def resolve_config_path(path: Optional[str] = None) -> str:
    load_dotenv()
    path = path or os.getenv("TELEBRIDGE_CONFIG") or CONFIG_PATH
    if not os.path.isabs(path):
        path = os.path.join(os.getcwd(), path)
    return path


def load_settings(path: Optional[str] = None) -> AppSettings:
    """Load .env and the JSON config, then validate them together."""

    return validate_config(_load_json_config(resolve_config_path(path)))

"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class BackfillConfig:
    """Startup replay settings for the backfill coordinator."""

    enabled: bool = True
    limit: int = 1
    auto_delete: bool = True
    # Seconds; the JSON config stores milliseconds.
    delete_after: float = 5.0
    send_delay: float = 0.5


@dataclass(frozen=True)
class MentionConfig:
    """Bot-mention logging settings consumed by the mention adapter."""

    enabled: bool = False
    reply: bool = True


@dataclass(frozen=True)
class FileLogConfig:
    enabled: bool = False
    path: str = "logs/telebridge.log"
    max_bytes: int = 5 * 1024 * 1024
    backup_count: int = 5


@dataclass(frozen=True)
class LoggingConfig:
    """Process logging settings; tokens are always redacted."""

    enabled: bool = True
    level: str = "INFO"
    console: bool = True
    file: FileLogConfig = field(default_factory=FileLogConfig)
    # Extra environment variable names whose values are masked in logs.
    redact_env: tuple = ()

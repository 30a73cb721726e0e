"""Subscription surface between the source client and the relay engine.

The source adapter translates its SDK events into these calls; everything
below this layer is transport independent.
"""

from __future__ import annotations

import logging
from typing import Optional

from core.backfill import BackfillCoordinator
from core.config import BackfillConfig
from core.models import SourceMessage
from core.processor import RelayEngine

LOGGER = logging.getLogger(__name__)


class RelayBridge:
    """Consumes source events and keeps per-event failures contained."""

    def __init__(
        self,
        engine: RelayEngine,
        backfill: Optional[BackfillCoordinator] = None,
        backfill_config: Optional[BackfillConfig] = None,
    ) -> None:
        self._engine = engine
        self._backfill = backfill
        self._backfill_config = backfill_config or BackfillConfig(enabled=False)
        self._backfill_started = False

    async def on_message_created(self, message: SourceMessage) -> None:
        try:
            await self._engine.relay_create(message)
        except Exception:
            LOGGER.exception("Error while relaying new message %s", message.message_id)

    async def on_message_updated(self, message: SourceMessage) -> None:
        try:
            await self._engine.relay_update(message)
        except Exception:
            LOGGER.exception("Error while relaying edit of message %s", message.message_id)

    async def on_message_deleted(self, channel_id: str, message_id: str) -> None:
        if not self._engine.is_paired(channel_id):
            return
        try:
            await self._engine.relay_delete(message_id)
        except Exception:
            LOGGER.exception("Error while deleting relayed message %s", message_id)

    async def on_ready(self) -> None:
        """Run the startup backfill once, even across reconnects."""

        LOGGER.info("Source client is ready")
        if self._backfill is None or not self._backfill_config.enabled:
            return
        if self._backfill_started:
            return
        self._backfill_started = True
        try:
            await self._backfill.run(self._backfill_config)
        except Exception:
            LOGGER.exception("Backfill failed")

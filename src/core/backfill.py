"""Startup backfill of recent source history.

Replays the last few messages of every paired channel through the normal
create path, then optionally deletes them again after a delay. This is an
end-to-end connectivity check, not a delivery guarantee.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Optional

from core.config import BackfillConfig
from core.errors import DestinationCallFailure
from core.models import ChannelPairing, RelayedMessage, ReversalSummary
from core.ports import DestinationPort, SourcePort
from core.processor import RelayEngine

LOGGER = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class BackfillCoordinator:
    """Replays recent history sequentially, pairing by pairing."""

    def __init__(
        self,
        engine: RelayEngine,
        source: SourcePort,
        destination: Optional[DestinationPort] = None,
        send_delay: float = 0.5,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._engine = engine
        self._source = source
        self._destination = destination
        self._send_delay = send_delay
        self._sleep = sleep

    async def replay_recent(self, limit: int) -> list[RelayedMessage]:
        """Relay the last limit messages of each pairing, oldest first."""

        relayed: list[RelayedMessage] = []
        for pairing in self._engine.list_pairings():
            relayed.extend(await self._replay_pairing(pairing, limit))
        LOGGER.info("Backfill complete: pairings=%s, relayed=%s", len(self._engine.list_pairings()), len(relayed))
        return relayed

    async def _replay_pairing(self, pairing: ChannelPairing, limit: int) -> list[RelayedMessage]:
        channel_id = pairing.source_channel_id
        try:
            messages = await self._source.fetch_recent_messages(channel_id, limit)
        except Exception:
            LOGGER.exception("Failed to fetch recent messages for channel %s", channel_id)
            return []

        relayed: list[RelayedMessage] = []
        skipped = 0
        # Sources return newest first; replay oldest first to keep destination order.
        for message in reversed(messages):
            try:
                record = await self._engine.relay_create(message)
            except DestinationCallFailure:
                LOGGER.warning("Backfill could not relay message %s", message.message_id)
                continue
            if record is None:
                skipped += 1
                continue
            relayed.append(RelayedMessage(source_id=message.message_id, destination_chat_id=record.destination_chat_id))
            # Serialized and paced to stay below destination rate limits.
            await self._sleep(self._send_delay)

        LOGGER.info(
            "Backfilled %s message(s) from channel %s to %s (skipped %s)",
            len(relayed),
            channel_id,
            await self._describe_destination(pairing),
            skipped,
        )
        return relayed

    async def _describe_destination(self, pairing: ChannelPairing) -> str:
        label = f"ID: {pairing.destination_chat_id}"
        if self._destination is not None:
            try:
                label = await self._destination.get_chat_title(pairing.destination_chat_id) or label
            except DestinationCallFailure as exc:
                LOGGER.debug("Could not fetch title of chat %s: %s", pairing.destination_chat_id, exc)
        if pairing.destination_thread_id is not None:
            label = f"{label} (thread {pairing.destination_thread_id})"
        return label

    async def reverse_recent(self, records: Iterable[RelayedMessage], delay: float) -> ReversalSummary:
        """Wait delay seconds, then delete everything a backfill relayed."""

        records = list(records)
        await self._sleep(delay)

        succeeded = failed = missing = 0
        for relayed in records:
            try:
                deleted = await self._engine.relay_delete(relayed.source_id)
            except Exception:
                LOGGER.exception("Failed to delete backfilled message %s", relayed.source_id)
                failed += 1
                continue
            if deleted:
                succeeded += 1
            else:
                LOGGER.warning("No destination data found for backfilled message %s", relayed.source_id)
                missing += 1

        summary = ReversalSummary(attempted=len(records), succeeded=succeeded, failed=failed, missing=missing)
        LOGGER.info(
            "Backfill reversal complete: attempted=%s, succeeded=%s, failed=%s, missing=%s",
            summary.attempted,
            summary.succeeded,
            summary.failed,
            summary.missing,
        )
        return summary

    async def run(self, config: BackfillConfig) -> Optional[ReversalSummary]:
        """Replay, then reverse or keep the messages according to config."""

        relayed = await self.replay_recent(config.limit)
        if not config.auto_delete:
            LOGGER.info("Keeping %s backfilled message(s) (auto_delete disabled)", len(relayed))
            return None
        return await self.reverse_recent(relayed, config.delete_after)

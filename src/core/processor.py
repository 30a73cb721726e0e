"""Core relay pipeline.

This module is integration-agnostic. It only relies on the destination port
and the correlation store, enabling other platforms without changes here.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Tuple

from core.errors import DestinationCallFailure
from core.markup import CAPTION_LIMIT, TEXT_LIMIT, format_relay_text, sanitize_markdown
from core.models import ChannelPairing, DeliveryRecord, EventKind, MediaItem, SourceMessage
from core.pairings import ChannelPairingTable
from core.policy import RelayPolicy
from core.ports import DestinationPort
from core.store import CorrelationStore

LOGGER = logging.getLogger(__name__)


class RelayEngine:
    """Orchestrates create, update and delete propagation to the destination."""

    def __init__(
        self,
        pairings: ChannelPairingTable,
        store: CorrelationStore,
        destination: DestinationPort,
        policy: Optional[RelayPolicy] = None,
    ) -> None:
        self._pairings = pairings
        self._store = store
        self._destination = destination
        self._policy = policy or RelayPolicy(pairings, store)

    def list_pairings(self) -> Tuple[ChannelPairing, ...]:
        return self._pairings.pairings

    def get_record(self, source_id: str) -> Optional[DeliveryRecord]:
        return self._store.get(source_id)

    def is_paired(self, channel_id: str) -> bool:
        return self._policy.admits_channel(channel_id)

    async def relay_create(self, message: SourceMessage) -> Optional[DeliveryRecord]:
        """Relay a new source message and remember what it produced."""

        async with self._store.guard(message.message_id):
            if not self._policy.admit(message, EventKind.CREATED):
                return None
            LOGGER.info("Relaying new message %s from channel %s", message.message_id, message.channel_id)
            return await self._create(message)

    async def relay_update(self, message: SourceMessage) -> Optional[DeliveryRecord]:
        """Replace the destination copy of an edited source message.

        Destination media groups cannot be replaced atomically, so the old
        messages are deleted and the new content is sent from scratch.
        """

        async with self._store.guard(message.message_id):
            if not self._policy.admit(message, EventKind.UPDATED):
                return None
            if not self._store.has(message.message_id):
                LOGGER.debug("Update for %s ignored: it was never relayed", message.message_id)
                return None
            LOGGER.info("Relaying edit of message %s", message.message_id)
            await self._delete(message.message_id)
            return await self._create(message)

    async def relay_delete(self, source_id: str) -> bool:
        """Delete everything a source message produced; True if a record existed."""

        async with self._store.guard(source_id):
            if not self._store.has(source_id):
                LOGGER.debug("Delete for %s ignored: nothing relayed", source_id)
                return False
            LOGGER.info("Deleting relayed copy of message %s", source_id)
            await self._delete(source_id)
            return True

    async def _create(self, message: SourceMessage) -> Optional[DeliveryRecord]:
        pairing = self._pairings.get(message.channel_id)
        if pairing is None:
            # Admission already checked the channel; reaching this is a bug.
            LOGGER.error("No channel pairing found for %s", message.channel_id)
            return None

        # Destination messages are parsed as Markdown, captions and plain text alike.
        text = format_relay_text(message.author_name, message.text)
        chat_id = pairing.destination_chat_id
        thread_id = pairing.destination_thread_id
        try:
            if message.attachments:
                caption = sanitize_markdown(text, CAPTION_LIMIT)
                items = [
                    MediaItem(url=attachment.url, kind=attachment.kind, caption=caption if index == 0 else None)
                    for index, attachment in enumerate(message.attachments)
                ]
                receipts = await self._destination.send_media_group(chat_id, items, thread_id)
            else:
                receipts = [await self._destination.send_text(chat_id, sanitize_markdown(text, TEXT_LIMIT), thread_id)]
        except DestinationCallFailure:
            LOGGER.error(
                "Failed to relay message %s from channel %s to chat %s",
                message.message_id,
                message.channel_id,
                chat_id,
            )
            raise

        if not receipts:
            raise DestinationCallFailure("send", f"no messages returned for {message.message_id}")

        record = DeliveryRecord(
            primary_message_id=receipts[0].message_id,
            auxiliary_message_ids=tuple(receipt.message_id for receipt in receipts[1:]),
            destination_chat_id=str(chat_id),
            destination_thread_id=thread_id,
        )
        self._store.put(message.message_id, record)
        LOGGER.debug(
            "Message %s relayed as %s (+%s media)",
            message.message_id,
            record.primary_message_id,
            len(record.auxiliary_message_ids),
        )
        return record

    async def _delete(self, source_id: str) -> None:
        record = self._store.get(source_id)
        if record is None:
            return

        chat_id = record.destination_chat_id
        thread_id = record.destination_thread_id
        results = await asyncio.gather(
            self._destination.delete_message(chat_id, record.primary_message_id, thread_id),
            *(
                self._destination.delete_message(chat_id, message_id, thread_id)
                for message_id in record.auxiliary_message_ids
            ),
            return_exceptions=True,
        )

        # One stuck delete must not block future processing of this id, so the
        # record goes away whatever the outcome.
        self._store.delete(source_id)

        primary_result, auxiliary_results = results[0], results[1:]
        for message_id, result in zip(record.auxiliary_message_ids, auxiliary_results):
            if isinstance(result, BaseException):
                LOGGER.debug("Ignoring failed media delete %s in chat %s: %s", message_id, chat_id, result)

        if isinstance(primary_result, BaseException):
            LOGGER.error(
                "Failed to delete message %s in chat %s for source %s",
                record.primary_message_id,
                chat_id,
                source_id,
            )
            raise primary_result

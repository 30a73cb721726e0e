"""Relay admission policy (core domain)."""

from __future__ import annotations

import logging

from core.models import EventKind, SourceMessage
from core.pairings import ChannelPairingTable
from core.store import CorrelationStore

LOGGER = logging.getLogger(__name__)


class RelayPolicy:
    """Decide whether a source event is in scope for relaying.

    The policy only reads the pairing table and the store, so it can be
    called any number of times for the same event.
    """

    def __init__(self, pairings: ChannelPairingTable, store: CorrelationStore) -> None:
        self._pairings = pairings
        self._store = store

    def admits_channel(self, channel_id: str) -> bool:
        return channel_id in self._pairings

    def admit(self, message: SourceMessage, kind: EventKind = EventKind.CREATED) -> bool:
        if not self.admits_channel(message.channel_id):
            LOGGER.debug("Rejected %s: channel %s is not paired", message.message_id, message.channel_id)
            return False

        # Messages without text or attachments (e.g. bare embeds) have nothing to relay.
        if not message.has_content:
            LOGGER.debug("Rejected %s: no content", message.message_id)
            return False

        # Duplicate callbacks and backfill re-ingestion must not relay twice.
        if kind is EventKind.CREATED and self._store.has(message.message_id):
            LOGGER.debug("Rejected %s: already relayed", message.message_id)
            return False

        return True

"""In-memory correlation store.

Maps a source message id to the DeliveryRecord of what it produced on the
destination. The table is volatile: a restart forgets every correlation.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from core.models import DeliveryRecord


class CorrelationStore:
    """Single owner of DeliveryRecords, keyed by source message id."""

    def __init__(self) -> None:
        self._records: dict[str, DeliveryRecord] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: defaultdict[str, int] = defaultdict(int)

    def get(self, source_id: str) -> Optional[DeliveryRecord]:
        return self._records.get(source_id)

    def has(self, source_id: str) -> bool:
        return source_id in self._records

    def put(self, source_id: str, record: DeliveryRecord) -> None:
        """Store the record for source_id, replacing any previous one."""

        self._records[source_id] = record

    def delete(self, source_id: str) -> Optional[DeliveryRecord]:
        return self._records.pop(source_id, None)

    def __len__(self) -> int:
        return len(self._records)

    @asynccontextmanager
    async def guard(self, source_id: str) -> AsyncIterator[None]:
        """Serialize read-modify-write sequences for one source id.

        Locks are created on demand and dropped once nobody holds or waits
        for them, so the lock table never outgrows the in-flight work.
        """

        lock = self._locks.get(source_id)
        if lock is None:
            lock = self._locks[source_id] = asyncio.Lock()
        self._holders[source_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._holders[source_id] -= 1
            if not self._holders[source_id]:
                del self._holders[source_id]
                self._locks.pop(source_id, None)

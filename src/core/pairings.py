"""Channel pairing table (core domain)."""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Iterator, Optional, Tuple

from core.models import ChannelPairing


class ChannelPairingTable:
    """Immutable one-to-one mapping of source channels to destinations."""

    def __init__(self, pairings: Iterable[ChannelPairing]) -> None:
        ordered: list[ChannelPairing] = []
        by_source: dict[str, ChannelPairing] = {}
        for pairing in pairings:
            if pairing.source_channel_id in by_source:
                raise ValueError(f"Channel {pairing.source_channel_id} is paired more than once")
            by_source[pairing.source_channel_id] = pairing
            ordered.append(pairing)
        self._pairings = tuple(ordered)
        self._by_source = MappingProxyType(by_source)

    @property
    def pairings(self) -> Tuple[ChannelPairing, ...]:
        return self._pairings

    def get(self, source_channel_id: str) -> Optional[ChannelPairing]:
        return self._by_source.get(source_channel_id)

    def __contains__(self, source_channel_id: object) -> bool:
        return source_channel_id in self._by_source

    def __iter__(self) -> Iterator[ChannelPairing]:
        return iter(self._pairings)

    def __len__(self) -> int:
        return len(self._pairings)

from __future__ import annotations

import pytest

from core.models import ChannelPairing
from core.pairings import ChannelPairingTable


def test_lookup_by_source_channel() -> None:
    table = ChannelPairingTable(
        [
            ChannelPairing("111", -100, None),
            ChannelPairing("222", -200, 7),
        ]
    )

    assert len(table) == 2
    assert "111" in table
    assert "333" not in table
    assert table.get("222") == ChannelPairing("222", -200, 7)
    assert table.get("333") is None
    assert [pairing.source_channel_id for pairing in table] == ["111", "222"]


def test_duplicate_source_channel_is_rejected() -> None:
    with pytest.raises(ValueError):
        ChannelPairingTable([ChannelPairing("111", -100), ChannelPairing("111", -200)])


def test_pairings_are_immutable() -> None:
    source = [ChannelPairing("111", -100)]
    table = ChannelPairingTable(source)
    source.append(ChannelPairing("222", -200))

    assert len(table) == 1
    assert isinstance(table.pairings, tuple)

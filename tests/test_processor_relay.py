from __future__ import annotations

import asyncio

import pytest

from core.errors import DestinationCallFailure
from core.models import Attachment, ChannelPairing, SourceMessage
from core.pairings import ChannelPairingTable
from core.processor import RelayEngine
from core.store import CorrelationStore
from fakes import FakeDestination


def _engine(destination: FakeDestination) -> tuple[RelayEngine, CorrelationStore]:
    store = CorrelationStore()
    pairings = ChannelPairingTable(
        [
            ChannelPairing("111", 100),
            ChannelPairing("222", -200, 7),
        ]
    )
    return RelayEngine(pairings, store, destination), store


def _message(
    message_id: str = "m1",
    *,
    channel_id: str = "111",
    text: str = "hello",
    attachments: int = 0,
) -> SourceMessage:
    return SourceMessage(
        message_id=message_id,
        channel_id=channel_id,
        author_name="Alice",
        text=text,
        attachments=tuple(Attachment(f"https://cdn.example/{index}.png") for index in range(attachments)),
    )


def test_text_message_is_sent_once() -> None:
    destination = FakeDestination()
    engine, store = _engine(destination)

    record = asyncio.run(engine.relay_create(_message()))

    assert destination.calls == [("send_text", 100, "Alice:\nhello", None)]
    assert record is not None
    assert record.auxiliary_message_ids == ()
    assert record.destination_chat_id == "100"
    assert store.get("m1") == record


def test_media_group_caption_on_first_item_only() -> None:
    destination = FakeDestination()
    engine, _ = _engine(destination)

    record = asyncio.run(engine.relay_create(_message(text="cap", attachments=3)))

    [call] = destination.calls
    name, chat_id, items, thread_id = call
    assert (name, chat_id, thread_id) == ("send_media_group", 100, None)
    assert [item.caption for item in items] == ["Alice:\ncap", None, None]
    assert [item.url for item in items] == [f"https://cdn.example/{index}.png" for index in range(3)]
    assert record.primary_message_id == 1001
    assert record.auxiliary_message_ids == (1002, 1003)


def test_caption_is_sanitized() -> None:
    destination = FakeDestination()
    engine, _ = _engine(destination)

    asyncio.run(engine.relay_create(_message(text="5 * 5 is *big*", attachments=2)))

    items = destination.calls[0][2]
    assert items[0].caption == "Alice:\n5 * 5 is *big\\*"


def test_long_caption_is_cut_to_caption_limit() -> None:
    destination = FakeDestination()
    engine, _ = _engine(destination)

    asyncio.run(engine.relay_create(_message(text="x" * 1990 + " *a", attachments=2)))

    caption = destination.calls[0][2][0].caption
    assert len(caption) == 1024
    assert caption.startswith("Alice:\nxxx")


def test_plain_text_escapes_markdown_markers() -> None:
    destination = FakeDestination()
    engine, _ = _engine(destination)

    asyncio.run(engine.relay_create(_message(text="see my_var [here]")))

    assert destination.calls == [("send_text", 100, "Alice:\nsee my\\_var \\[here]", None)]


def test_thread_id_is_forwarded() -> None:
    destination = FakeDestination()
    engine, _ = _engine(destination)

    record = asyncio.run(engine.relay_create(_message(channel_id="222")))

    assert destination.calls == [("send_text", -200, "Alice:\nhello", 7)]
    assert record.destination_thread_id == 7


def test_rejected_events_issue_no_calls() -> None:
    destination = FakeDestination()
    engine, store = _engine(destination)

    assert asyncio.run(engine.relay_create(_message(channel_id="999"))) is None
    assert asyncio.run(engine.relay_create(_message(text=""))) is None
    assert destination.calls == []
    assert len(store) == 0


def test_duplicate_create_is_ignored() -> None:
    destination = FakeDestination()
    engine, _ = _engine(destination)

    async def scenario() -> None:
        await engine.relay_create(_message())
        await engine.relay_create(_message())

    asyncio.run(scenario())
    assert len(destination.calls_named("send_text")) == 1


def test_create_failure_leaves_no_record() -> None:
    destination = FakeDestination()
    destination.fail_send = True
    engine, store = _engine(destination)

    with pytest.raises(DestinationCallFailure):
        asyncio.run(engine.relay_create(_message()))
    assert store.get("m1") is None


def test_create_then_delete_round_trip() -> None:
    destination = FakeDestination()
    engine, store = _engine(destination)

    async def scenario() -> bool:
        await engine.relay_create(_message(attachments=3))
        return await engine.relay_delete("m1")

    assert asyncio.run(scenario()) is True
    deletes = destination.calls_named("delete_message")
    assert sorted(call[2] for call in deletes) == [1001, 1002, 1003]
    assert all(call[1] == "100" for call in deletes)
    assert store.get("m1") is None


def test_delete_twice_is_safe() -> None:
    destination = FakeDestination()
    engine, _ = _engine(destination)

    async def scenario() -> tuple[bool, bool]:
        await engine.relay_create(_message())
        return await engine.relay_delete("m1"), await engine.relay_delete("m1")

    assert asyncio.run(scenario()) == (True, False)
    assert len(destination.calls_named("delete_message")) == 1


def test_delete_of_unknown_message_issues_no_calls() -> None:
    destination = FakeDestination()
    engine, _ = _engine(destination)

    assert asyncio.run(engine.relay_delete("never-seen")) is False
    assert destination.calls == []


def test_auxiliary_delete_failure_is_swallowed() -> None:
    destination = FakeDestination()
    destination.fail_delete = {1002}
    engine, store = _engine(destination)

    async def scenario() -> bool:
        await engine.relay_create(_message(attachments=3))
        return await engine.relay_delete("m1")

    assert asyncio.run(scenario()) is True
    assert len(destination.calls_named("delete_message")) == 3
    assert store.get("m1") is None


def test_primary_delete_failure_surfaces_but_record_is_removed() -> None:
    destination = FakeDestination()
    destination.fail_delete = {1001}
    engine, store = _engine(destination)

    async def scenario() -> None:
        await engine.relay_create(_message(attachments=2))
        await engine.relay_delete("m1")

    with pytest.raises(DestinationCallFailure):
        asyncio.run(scenario())
    assert store.get("m1") is None
    assert len(destination.calls_named("delete_message")) == 2


def test_update_deletes_then_recreates() -> None:
    destination = FakeDestination()
    engine, store = _engine(destination)

    async def scenario():
        await engine.relay_create(_message(attachments=2))
        return await engine.relay_update(_message(text="edited"))

    record = asyncio.run(scenario())

    names = [call[0] for call in destination.calls]
    assert names == ["send_media_group", "delete_message", "delete_message", "send_text"]
    assert destination.calls[-1] == ("send_text", 100, "Alice:\nedited", None)
    assert store.get("m1") == record
    assert record.primary_message_id == 1003
    assert record.auxiliary_message_ids == ()


def test_update_of_unrelayed_message_is_noop() -> None:
    destination = FakeDestination()
    engine, store = _engine(destination)

    assert asyncio.run(engine.relay_update(_message(text="edited"))) is None
    assert destination.calls == []
    assert len(store) == 0


def test_update_skips_recreate_when_primary_delete_fails() -> None:
    destination = FakeDestination()
    engine, store = _engine(destination)

    async def scenario() -> None:
        await engine.relay_create(_message())
        destination.fail_delete = {1001}
        await engine.relay_update(_message(text="edited"))

    with pytest.raises(DestinationCallFailure):
        asyncio.run(scenario())
    assert len(destination.calls_named("send_text")) == 1
    assert store.get("m1") is None


def test_update_waits_for_pending_create_of_same_id() -> None:
    destination = FakeDestination()
    engine, _ = _engine(destination)

    async def scenario() -> None:
        create = asyncio.create_task(engine.relay_create(_message()))
        update = asyncio.create_task(engine.relay_update(_message(text="edited")))
        other = asyncio.create_task(engine.relay_create(_message("m2", text="other")))
        await asyncio.gather(create, update, other)

    asyncio.run(scenario())

    texts = [call[2] for call in destination.calls_named("send_text")]
    assert texts[0] == "Alice:\nhello"
    assert "Alice:\nedited" in texts
    assert "Alice:\nother" in texts
    m1_calls = [call for call in destination.calls if call[0] == "delete_message" or call[2] != "Alice:\nother"]
    assert [call[0] for call in m1_calls] == ["send_text", "delete_message", "send_text"]


def test_public_accessors() -> None:
    destination = FakeDestination()
    engine, _ = _engine(destination)

    assert [pairing.source_channel_id for pairing in engine.list_pairings()] == ["111", "222"]
    assert engine.get_record("m1") is None
    asyncio.run(engine.relay_create(_message()))
    assert engine.get_record("m1").primary_message_id == 1001

from __future__ import annotations

import logging

from app import _RedactingFormatter, _is_content_edit


class DummyPayload:
    def __init__(self, data: dict) -> None:
        self.data = data


def test_redacting_formatter_masks_tokens() -> None:
    formatter = _RedactingFormatter(["123:secret", ""], fmt="%(message)s")
    record = logging.LogRecord(
        "httpx", logging.INFO, __file__, 1, "POST https://api.telegram.org/bot123:secret/sendMessage", None, None
    )
    assert formatter.format(record) == "POST https://api.telegram.org/bot***/sendMessage"


def test_only_real_edits_are_relayed() -> None:
    assert _is_content_edit(DummyPayload({"edited_timestamp": "2024-01-01T00:00:00+00:00", "content": "x"}))
    # Link previews being attached arrive as updates without an edit timestamp.
    assert not _is_content_edit(DummyPayload({"embeds": []}))
    assert not _is_content_edit(DummyPayload({}))

"""Relay text helpers (core domain)."""

from __future__ import annotations

from typing import Iterable, Optional

# Legacy Markdown entity markers that open and close a span.
MARKDOWN_DELIMITERS = ("*", "_", "`")
# Link markers have no simple pair form and are always taken literally.
ALWAYS_ESCAPED = ("[",)
ESCAPE_CHAR = "\\"

CAPTION_LIMIT = 1024
TEXT_LIMIT = 4096


def format_relay_text(author_name: str, text: str) -> str:
    """Return the destination text for a relayed message."""

    return f"{author_name}:\n{text}"


def escape_unpaired(
    text: str,
    delimiters: Iterable[str] = MARKDOWN_DELIMITERS,
    escape: str = ESCAPE_CHAR,
    always_escaped: Iterable[str] = ALWAYS_ESCAPED,
) -> str:
    """Escape every delimiter that does not open or close a valid pair.

    Scanning is greedy and left to right. A pair is a delimiter, a non-empty
    run without that delimiter, and the same delimiter again; the whole pair
    is copied verbatim, so markers inside it are literal. Anything else is
    prefixed with the escape character, so the result never has an unpaired
    delimiter.
    """

    delimiters = tuple(delimiters)
    always_escaped = tuple(always_escaped)
    parts: list[str] = []
    index = 0
    length = len(text)
    while index < length:
        char = text[index]
        if char in always_escaped:
            parts.append(f"{escape}{char}")
            index += 1
            continue
        if char not in delimiters:
            parts.append(char)
            index += 1
            continue

        closing = text.find(char, index + 1)
        if closing > index + 1:
            parts.append(text[index : closing + 1])
            index = closing + 1
        else:
            parts.append(f"{escape}{char}")
            index += 1
    return "".join(parts)


def sanitize_markdown(text: str, limit: Optional[int] = None) -> str:
    """Escape ``text`` for legacy Markdown, cut to at most ``limit`` characters.

    The raw text is cut before escaping, so the result never ends inside an
    escape sequence or an open pair.
    """

    escaped = escape_unpaired(text)
    if limit is None:
        return escaped

    cut = len(text)
    while len(escaped) > limit:
        # Each raw character escapes to at most two.
        overflow = len(escaped) - limit
        cut = max(0, cut - max(1, overflow // 2))
        escaped = escape_unpaired(text[:cut])
    return escaped

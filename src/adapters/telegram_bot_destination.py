"""Telegram Bot API destination adapter.

Implements the core DestinationPort over the Bot API with an async httpx
client, so several deletes for one relayed message can be in flight at once.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import httpx

from core.errors import DestinationCallFailure
from core.models import ChatId, DeliveryReceipt, MediaItem

LOGGER = logging.getLogger(__name__)

API_BASE_URL = "https://api.telegram.org"
PARSE_MODE = "Markdown"
# sendMediaGroup accepts between 2 and 10 items.
MEDIA_GROUP_LIMIT = 10

_SINGLE_MEDIA_METHODS = {
    "photo": ("sendPhoto", "photo"),
    "video": ("sendVideo", "video"),
    "document": ("sendDocument", "document"),
}


class TelegramBotDestination:
    """Destination adapter that relays messages via the Telegram Bot API."""

    def __init__(
        self,
        bot_token: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        base_url: str = API_BASE_URL,
    ) -> None:
        self._bot_token = bot_token
        self._base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    def _endpoint(self, method: str) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"{self._base_url}/bot{self._bot_token}/{method}"

    async def call(self, method: str, payload: Optional[dict[str, Any]] = None, timeout: Optional[float] = None) -> Any:
        """POST one Bot API method and return its result field."""

        request_kwargs: dict[str, Any] = {"json": payload or {}}
        if timeout is not None:
            request_kwargs["timeout"] = timeout
        try:
            response = await self._http.post(self._endpoint(method), **request_kwargs)
        except httpx.HTTPError as exc:
            raise DestinationCallFailure(method, f"{type(exc).__name__}: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if response.status_code >= 400 or not body.get("ok", False):
            description = body.get("description") or response.text or "unknown error"
            raise DestinationCallFailure(method, description, response.status_code)
        return body.get("result")

    async def send_text(self, chat_id: ChatId, text: str, thread_id: Optional[int] = None) -> DeliveryReceipt:
        payload = _with_thread({"chat_id": chat_id, "text": text, "parse_mode": PARSE_MODE}, thread_id)
        result = await self.call("sendMessage", payload)
        LOGGER.debug("Sent text message to chat %s: %s", chat_id, result["message_id"])
        return DeliveryReceipt(message_id=int(result["message_id"]))

    async def send_media_group(
        self,
        chat_id: ChatId,
        items: Sequence[MediaItem],
        thread_id: Optional[int] = None,
    ) -> list[DeliveryReceipt]:
        """Send items as grouped media, in order; one receipt per item."""

        receipts: list[DeliveryReceipt] = []
        for chunk in _album_chunks(items):
            if len(chunk) == 1:
                receipts.append(await self._send_single_media(chat_id, chunk[0], thread_id))
                continue
            payload = _with_thread({"chat_id": chat_id, "media": [_input_media(item) for item in chunk]}, thread_id)
            result = await self.call("sendMediaGroup", payload)
            receipts.extend(DeliveryReceipt(message_id=int(sent["message_id"])) for sent in result)
        LOGGER.debug("Sent media group to chat %s: %s", chat_id, [receipt.message_id for receipt in receipts])
        return receipts

    async def _send_single_media(self, chat_id: ChatId, item: MediaItem, thread_id: Optional[int]) -> DeliveryReceipt:
        method, field = _SINGLE_MEDIA_METHODS.get(item.kind, _SINGLE_MEDIA_METHODS["document"])
        payload: dict[str, Any] = {"chat_id": chat_id, field: item.url}
        if item.caption:
            payload["caption"] = item.caption
            payload["parse_mode"] = PARSE_MODE
        result = await self.call(method, _with_thread(payload, thread_id))
        return DeliveryReceipt(message_id=int(result["message_id"]))

    async def delete_message(self, chat_id: ChatId, message_id: int, thread_id: Optional[int] = None) -> None:
        # deleteMessage addresses messages by chat and id only; thread_id is accepted
        # for symmetry with the send calls.
        await self.call("deleteMessage", {"chat_id": chat_id, "message_id": message_id})
        LOGGER.debug("Deleted message %s from chat %s", message_id, chat_id)

    async def get_chat_title(self, chat_id: ChatId) -> str:
        chat = await self.call("getChat", {"chat_id": chat_id})
        return chat.get("title") or chat.get("username") or str(chat_id)

    async def get_chat(self, chat_id: ChatId) -> dict[str, Any]:
        return await self.call("getChat", {"chat_id": chat_id})

    async def get_me(self) -> dict[str, Any]:
        return await self.call("getMe")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()


def _with_thread(payload: dict[str, Any], thread_id: Optional[int]) -> dict[str, Any]:
    if thread_id is not None:
        payload["message_thread_id"] = thread_id
    return payload


def _media_kind(item: MediaItem) -> str:
    return item.kind if item.kind in _SINGLE_MEDIA_METHODS else "document"


def _album_chunks(items: Sequence[MediaItem]) -> list[list[MediaItem]]:
    """Split items into ordered albums the Bot API accepts.

    Documents cannot share an album with photos or videos, so consecutive
    items of a compatible kind are grouped and each group is cut at the
    album size limit.
    """

    chunks: list[list[MediaItem]] = []
    current: list[MediaItem] = []
    current_is_document: Optional[bool] = None
    for item in items:
        is_document = _media_kind(item) == "document"
        if current and (is_document != current_is_document or len(current) == MEDIA_GROUP_LIMIT):
            chunks.append(current)
            current = []
        current.append(item)
        current_is_document = is_document
    if current:
        chunks.append(current)
    return chunks


def _input_media(item: MediaItem) -> dict[str, Any]:
    media: dict[str, Any] = {"type": _media_kind(item), "media": item.url}
    if item.caption:
        media["caption"] = item.caption
        media["parse_mode"] = PARSE_MODE
    return media

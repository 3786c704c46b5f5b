from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx

from .constants import REQUEST_TIMEOUT_S, TELEGRAM_API_BASE, TELEGRAM_HARD_LIMIT

logger = logging.getLogger(__name__)


class TelegramError(RuntimeError):
    def __init__(self, description: str, error_code: Optional[int] = None) -> None:
        super().__init__(description)
        self.description = description
        self.error_code = error_code


class BotApi(Protocol):
    async def get_file(self, file_id: str) -> Dict[str, Any]: ...

    async def download_file(self, file_path: str) -> bytes: ...

    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_to_message_id: Optional[int] = None,
        entities: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]: ...

    async def send_document(
        self,
        chat_id: int,
        data: bytes,
        filename: str,
        reply_to_message_id: Optional[int] = None,
    ) -> Dict[str, Any]: ...

    async def send_chat_action(
        self, chat_id: int, action: str = "typing"
    ) -> bool: ...

    async def set_message_reaction(
        self, chat_id: int, message_id: int, emoji: str
    ) -> bool: ...


class TelegramClient:
    """
    Minimal async Telegram Bot API client over httpx.

    Every method raises TelegramError when the API answers with ok=false or
    the request itself fails.
    """

    def __init__(
        self,
        token: str,
        timeout_s: float = REQUEST_TIMEOUT_S,
        *,
        base_url: str = TELEGRAM_API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not token:
            raise ValueError("Telegram token is empty")
        self._base = f"{base_url}/bot{token}"
        self._file_base = f"{base_url}/file/bot{token}"
        self._timeout_s = timeout_s
        self._http = httpx.AsyncClient(timeout=timeout_s, transport=transport)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> TelegramClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _call(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        files: Optional[Dict[str, Any]] = None,
        timeout_s: Optional[float] = None,
    ) -> Any:
        url = f"{self._base}/{method}"
        timeout = timeout_s if timeout_s is not None else self._timeout_s
        try:
            if files is not None:
                # multipart fields must be strings
                data = {
                    k: v if isinstance(v, str) else json.dumps(v)
                    for k, v in (params or {}).items()
                }
                resp = await self._http.post(url, data=data, files=files, timeout=timeout)
            else:
                resp = await self._http.post(url, json=params or {}, timeout=timeout)
        except httpx.HTTPError as e:
            # the message may carry the URL, which carries the token
            raise TelegramError(f"{method} request failed: {type(e).__name__}") from e

        try:
            payload = resp.json()
        except ValueError as e:
            raise TelegramError(
                f"{method} returned non-JSON response (HTTP {resp.status_code})",
                resp.status_code,
            ) from e

        if not isinstance(payload, dict) or not payload.get("ok"):
            description = "unknown error"
            error_code = resp.status_code
            if isinstance(payload, dict):
                description = str(payload.get("description") or description)
                error_code = payload.get("error_code", error_code)
            raise TelegramError(description, error_code)
        return payload.get("result")

    async def get_me(self) -> Dict[str, Any]:
        return await self._call("getMe")

    async def delete_webhook(self, drop_pending_updates: bool = False) -> bool:
        res = await self._call(
            "deleteWebhook", {"drop_pending_updates": drop_pending_updates}
        )
        return bool(res)

    async def get_updates(
        self,
        offset: Optional[int],
        timeout_s: int = 50,
        allowed_updates: Optional[List[str]] = None,
        request_timeout_s: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"timeout": timeout_s}
        if offset is not None:
            params["offset"] = offset
        if allowed_updates is not None:
            params["allowed_updates"] = allowed_updates
        if request_timeout_s is None:
            request_timeout_s = timeout_s + self._timeout_s
        return await self._call("getUpdates", params, timeout_s=request_timeout_s)

    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_to_message_id: Optional[int] = None,
        entities: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        if len(text) > TELEGRAM_HARD_LIMIT:
            raise ValueError("send_message received too-long text; chunk it first")
        params: Dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
        }
        if reply_to_message_id is not None:
            params["reply_parameters"] = {
                "message_id": reply_to_message_id,
                "allow_sending_without_reply": True,
            }
        if entities:
            params["entities"] = entities
        return await self._call("sendMessage", params)

    async def send_document(
        self,
        chat_id: int,
        data: bytes,
        filename: str,
        reply_to_message_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"chat_id": str(chat_id)}
        if reply_to_message_id is not None:
            params["reply_parameters"] = {
                "message_id": reply_to_message_id,
                "allow_sending_without_reply": True,
            }
        files = {"document": (filename, data, "image/png")}
        return await self._call("sendDocument", params, files=files)

    async def send_chat_action(self, chat_id: int, action: str = "typing") -> bool:
        params: Dict[str, Any] = {
            "chat_id": chat_id,
            "action": action,
        }
        return bool(await self._call("sendChatAction", params))

    async def set_message_reaction(
        self, chat_id: int, message_id: int, emoji: str
    ) -> bool:
        params: Dict[str, Any] = {
            "chat_id": chat_id,
            "message_id": message_id,
            "reaction": [{"type": "emoji", "emoji": emoji}],
        }
        return bool(await self._call("setMessageReaction", params))

    async def get_file(self, file_id: str) -> Dict[str, Any]:
        return await self._call("getFile", {"file_id": file_id})

    def file_url(self, file_path: str) -> str:
        return f"{self._file_base}/{file_path}"

    async def download_file(self, file_path: str) -> bytes:
        try:
            resp = await self._http.get(self.file_url(file_path))
        except httpx.HTTPError as e:
            raise TelegramError(f"file download failed: {type(e).__name__}") from e
        if resp.is_error:
            raise TelegramError(
                f"file download failed: HTTP {resp.status_code}", resp.status_code
            )
        return resp.content

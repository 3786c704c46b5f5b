from __future__ import annotations

from typing import Any

import pytest

from d2bot.config import BotConfig
from d2bot.renderer import RenderOk, RenderResult
from d2bot.telegram_client import TelegramError


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class FakeBot:
    """In-memory BotApi double that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.files: dict[str, bytes] = {}
        self.fail: set[str] = set()

    def _record(self, name: str, **kwargs: Any) -> None:
        self.calls.append((name, kwargs))
        if name in self.fail:
            raise TelegramError(f"{name} refused", 400)

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def sent(self, name: str) -> list[dict[str, Any]]:
        return [kwargs for call, kwargs in self.calls if call == name]

    async def get_file(self, file_id: str) -> dict[str, Any]:
        self._record("get_file", file_id=file_id)
        return {"file_id": file_id, "file_path": f"documents/{file_id}.d2"}

    async def download_file(self, file_path: str) -> bytes:
        self._record("download_file", file_path=file_path)
        file_id = file_path.removeprefix("documents/").removesuffix(".d2")
        return self.files[file_id]

    async def send_message(self, chat_id, text, reply_to_message_id=None, entities=None):
        self._record(
            "send_message",
            chat_id=chat_id,
            text=text,
            reply_to_message_id=reply_to_message_id,
            entities=entities,
        )
        return {"message_id": 1000}

    async def send_document(self, chat_id, data, filename, reply_to_message_id=None):
        self._record(
            "send_document",
            chat_id=chat_id,
            data=data,
            filename=filename,
            reply_to_message_id=reply_to_message_id,
        )
        return {"message_id": 1001}

    async def send_chat_action(self, chat_id, action="typing"):
        self._record("send_chat_action", chat_id=chat_id, action=action)
        return True

    async def set_message_reaction(self, chat_id, message_id, emoji):
        self._record(
            "set_message_reaction", chat_id=chat_id, message_id=message_id, emoji=emoji
        )
        return True


class StubRenderer:
    def __init__(self, result: RenderResult | None = None) -> None:
        self.result = result or RenderOk(image=b"\x89PNG")
        self.sources: list[str] = []

    async def render(self, source: str) -> RenderResult:
        self.sources.append(source)
        return self.result


@pytest.fixture
def fake_bot() -> FakeBot:
    return FakeBot()


@pytest.fixture
def cfg() -> BotConfig:
    return BotConfig(
        allowed_ids=frozenset({"alice"}),
        monitor_interval=5,
        bot_token="123:abc",
    )

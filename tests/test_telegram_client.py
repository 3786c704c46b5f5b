import json

import httpx
import pytest

from d2bot.telegram_client import TelegramClient, TelegramError


def _client(handler) -> TelegramClient:
    return TelegramClient("123:abc", transport=httpx.MockTransport(handler))


def test_empty_token_rejected() -> None:
    with pytest.raises(ValueError):
        TelegramClient("")


@pytest.mark.anyio
async def test_send_message_posts_json() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True, "result": {"message_id": 5}})

    async with _client(handler) as bot:
        result = await bot.send_message(42, "hello", reply_to_message_id=7)

    assert result == {"message_id": 5}
    assert seen[0].url.path == "/bot123:abc/sendMessage"
    body = json.loads(seen[0].content)
    assert body["chat_id"] == 42
    assert body["text"] == "hello"
    assert body["reply_parameters"]["message_id"] == 7
    assert "entities" not in body


@pytest.mark.anyio
async def test_send_document_is_multipart() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True, "result": {"message_id": 6}})

    async with _client(handler) as bot:
        await bot.send_document(42, b"\xff\xd8", "diagram.png", reply_to_message_id=7)

    request = seen[0]
    assert request.url.path == "/bot123:abc/sendDocument"
    assert request.headers["content-type"].startswith("multipart/form-data")
    content = request.read()
    assert b'filename="diagram.png"' in content
    assert b"\xff\xd8" in content
    assert b'"message_id": 7' in content


@pytest.mark.anyio
async def test_api_error_raises_with_description() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={
                "ok": False,
                "error_code": 400,
                "description": "Bad Request: message to react not found",
            },
        )

    async with _client(handler) as bot:
        with pytest.raises(TelegramError) as exc_info:
            await bot.set_message_reaction(42, 7, "\U0001f44c")

    assert exc_info.value.description == "Bad Request: message to react not found"
    assert exc_info.value.error_code == 400


@pytest.mark.anyio
async def test_network_error_hides_token() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as bot:
        with pytest.raises(TelegramError) as exc_info:
            await bot.get_me()

    assert "123:abc" not in str(exc_info.value)


@pytest.mark.anyio
async def test_get_file_and_download() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/bot123:abc/getFile":
            assert json.loads(request.content) == {"file_id": "f1"}
            return httpx.Response(
                200, json={"ok": True, "result": {"file_path": "documents/f1.d2"}}
            )
        assert request.url.path == "/file/bot123:abc/documents/f1.d2"
        return httpx.Response(200, content=b"x -> y")

    async with _client(handler) as bot:
        meta = await bot.get_file("f1")
        content = await bot.download_file(meta["file_path"])

    assert content == b"x -> y"


@pytest.mark.anyio
async def test_download_http_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    async with _client(handler) as bot:
        with pytest.raises(TelegramError, match="HTTP 404"):
            await bot.download_file("documents/gone.d2")


@pytest.mark.anyio
async def test_get_updates_params() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content) == {"timeout": 5, "offset": 11}
        return httpx.Response(200, json={"ok": True, "result": [{"update_id": 11}]})

    async with _client(handler) as bot:
        updates = await bot.get_updates(offset=11, timeout_s=5)

    assert updates == [{"update_id": 11}]
